"""
EOI CAN telemetry host - headless consumer for the solar vehicle CAN bus.

This module wires the pieces together:
- Loads configuration (defaults, environment, JSON file, command line)
- Connects a CAN adapter through CanService (socketcan, python-can, sim)
- Runs the selected pipeline topology (channel or shared collector)
- Optionally transmits the display keep-alive frame
- Logs a snapshot summary on the render tick

Usage:
  python -m eoi_telemetry.main --adapter socketcan --channel vcan0 --topology collector
"""
import argparse
import asyncio
import logging
import math
import sys
import time
from typing import Callable, List, Optional

from eoi_telemetry.config import ConfigManager, configure_logging
from eoi_telemetry.exceptions import TelemetryException
from eoi_telemetry.models.snapshot import TelemetrySnapshot
from eoi_telemetry.services.can_service import CanService
from eoi_telemetry.services.pipeline import AdapterFrameSink, AdapterFrameSource, build_pipeline
from eoi_telemetry.utils import derived
from eoi_telemetry.utils.network import wifi_ip_address

logger = logging.getLogger(__name__)


def _fmt(value: Optional[float], spec: str = '.1f') -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return '-'
    return format(value, spec)


class SnapshotLogger:
    """Render callback that logs a one-line snapshot summary at a fixed interval."""

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last: Optional[float] = None

    def __call__(self, snapshot: TelemetrySnapshot) -> None:
        now = self._clock()
        if self._last is not None and now - self._last < self.interval:
            return
        self._last = now
        logger.info(self.summary(snapshot))

    @staticmethod
    def summary(snapshot: TelemetrySnapshot) -> str:
        temperatures = derived.temperature_summary(snapshot)
        cells = derived.cell_voltage_summary(snapshot)
        return (
            f"speed={_fmt(snapshot.speed_kmh.get())} km/h "
            f"soc={_fmt(snapshot.battery_state_of_charge.get())} % "
            f"pack={_fmt(snapshot.battery_voltage.get(), '.2f')} V "
            f"net={_fmt(derived.net_power(snapshot))} W "
            f"motor={_fmt(derived.motor_battery_power(snapshot))} W "
            f"temp={_fmt(temperatures.minimum, '.0f')}/{_fmt(temperatures.maximum, '.0f')} C "
            f"cells={_fmt(cells.minimum, '.3f')}/{_fmt(cells.maximum, '.3f')} V "
            f"time={snapshot.time.get() or '-'} "
            f"ip={snapshot.ip_address.get() or '-'}"
        )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="EOI CAN telemetry host")
    p.add_argument("--config", default=None, help="JSON config file")
    p.add_argument("--adapter", choices=['sim', 'python-can', 'socketcan'], default=None)
    p.add_argument("--channel", default=None)
    p.add_argument("--interface", default=None, help="python-can interface name")
    p.add_argument("--topology", choices=['channel', 'collector'], default=None)
    p.add_argument("--keepalive", action="store_true", help="transmit the display keep-alive frame")
    p.add_argument("--log-level", default=None)
    return p.parse_args(argv)


def load_config(args: argparse.Namespace) -> ConfigManager:
    """Build the configuration and apply command-line overrides on top."""
    config = ConfigManager(config_file=args.config)
    if args.adapter:
        config.can_settings.adapter_type = args.adapter
    if args.channel:
        config.can_settings.channel = args.channel
    if args.interface:
        config.can_settings.interface = args.interface
    if args.topology:
        config.pipeline_settings.topology = args.topology
    if args.keepalive:
        config.pipeline_settings.keepalive_enabled = True
    if args.log_level:
        config.app_settings.log_level = args.log_level.upper()
    return config


async def run(config: ConfigManager) -> None:
    service = CanService(config.can_settings)
    service.connect()
    try:
        pipeline = build_pipeline(
            config.pipeline_settings,
            source=AdapterFrameSource(service.adapter),
            sink=AdapterFrameSink(service.adapter),
            on_render=SnapshotLogger(config.app_settings.snapshot_log_interval),
            address_lookup=wifi_ip_address,
        )
        await pipeline.run()
    finally:
        service.disconnect()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = load_config(args)
    configure_logging(config.app_settings.log_level)

    try:
        config.require_valid()
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except TelemetryException as e:
        logger.error(f"Telemetry host stopped: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
