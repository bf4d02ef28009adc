"""
Aggregate view of the vehicle state built from decoded CAN messages.

``TelemetrySnapshot`` owns one :class:`StaleValue` per published field.
``ingest()`` routes each decoded record to the field(s) it refreshes. The
snapshot has a single writer (the consumer task); it is not locked.
"""
import ipaddress
import logging
import time
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from eoi_telemetry.constants import (
    BATTERY_CELL_COUNT, BATTERY_TEMPERATURE_COUNT, DEFAULT_TTL_SECONDS, MPPT_PANEL_COUNT,
)
from eoi_telemetry.models.messages import (
    BatteryUptime, CellVoltageGroup, CellVoltages13To14PackAndStack, ChargeAndDischargeCurrent,
    GnssDateTime, GnssLatitude, GnssLongitude, GnssSpeedAndHeading, GnssStatus, MpptChannelPower,
    MpptMessage, PackAndPeripheralCurrent, SocErrorFlagsAndBalancing, StatusMessage1,
    StatusMessage4, StatusMessage5, TemperaturesAndStates, ThrottleStatus,
)
from eoi_telemetry.models.stale_value import StaleValue

logger = logging.getLogger(__name__)

# (mppt_id, channel) -> panel index, as wired on the vehicle
MPPT_PANEL_MAP: Dict[Tuple[int, int], int] = {
    (2, 1): 0,
    (2, 2): 1,
    (2, 3): 2,
    (5, 0): 3,
    (5, 1): 4,
    (5, 2): 5,
    (4, 1): 6,
    (4, 2): 7,
    (6, 0): 8,
    (6, 1): 9,
    (6, 2): 10,
}


class TelemetrySnapshot:
    """Latest known value of every telemetry field, each expiring on its own.

    Display and export code reads fields through ``StaleValue.get()`` only.
    Fields that are derived from others (power figures) are not stored; see
    :mod:`eoi_telemetry.utils.derived`.
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock

        self.speed_kmh = self._cell()
        self.gnss_fix = self._cell()
        self.gnss_latitude = self._cell()
        self.gnss_longitude = self._cell()
        self.time = self._cell()

        self.battery_state_of_charge = self._cell()
        self.battery_cell_voltages: List[StaleValue] = [self._cell() for _ in range(BATTERY_CELL_COUNT)]
        self.battery_current_pack = self._cell()
        self.battery_current_in = self._cell()
        self.battery_current_out_motor = self._cell()
        self.battery_current_out_peripherals = self._cell()
        self.battery_voltage = self._cell()
        self.battery_stack_voltage = self._cell()
        self.battery_temperatures: List[StaleValue] = [
            self._cell() for _ in range(BATTERY_TEMPERATURE_COUNT)
        ]
        self.battery_ic_temperature = self._cell()
        self.battery_uptime_ms = self._cell()
        self.battery_error_flags = self._cell()
        self.battery_balancing_status = self._cell()
        self.battery_state = self._cell()
        self.battery_charge_state = self._cell()
        self.battery_discharge_state = self._cell()

        self.motor_battery_voltage = self._cell()
        self.motor_battery_current = self._cell()
        self.motor_current = self._cell()
        self.motor_duty_cycle = self._cell()
        self.motor_rpm = self._cell()
        self.motor_fet_temperature = self._cell()
        self.motor_temperature = self._cell()

        self.throttle_value = self._cell()
        self.throttle_errors = self._cell()

        # (power, voltage, current) per panel
        self.mppt_panel_info: List[StaleValue] = [self._cell() for _ in range(MPPT_PANEL_COUNT)]

        self.charging_disabled = self._cell()
        self.ip_address = self._cell()

    def _cell(self) -> StaleValue:
        return StaleValue(ttl=self.ttl, clock=self._clock)

    def ingest(self, message) -> bool:
        """Fold one decoded message into the snapshot.

        Args:
            message: A record produced by the frame codec

        Returns:
            True if at least one field was updated, False if the record has no
            consumer field (or is an unmapped MPPT channel).
        """
        if isinstance(message, PackAndPeripheralCurrent):
            self.battery_current_out_peripherals.update(message.peripheral_current)
            self.battery_current_pack.update(message.pack_current)
        elif isinstance(message, ChargeAndDischargeCurrent):
            self.battery_current_in.update(message.charge_current)
            self.battery_current_out_motor.update(message.discharge_current)
        elif isinstance(message, SocErrorFlagsAndBalancing):
            self.battery_state_of_charge.update(message.state_of_charge)
            self.battery_error_flags.update(message.error_flags)
            self.battery_balancing_status.update(message.balancing_status)
        elif isinstance(message, CellVoltageGroup):
            self._update_cell_voltages(message.first_cell, message.cell_voltages)
        elif isinstance(message, CellVoltages13To14PackAndStack):
            self._update_cell_voltages(message.first_cell, message.cell_voltages)
            self.battery_voltage.update(message.pack_voltage)
            self.battery_stack_voltage.update(message.stack_voltage)
        elif isinstance(message, TemperaturesAndStates):
            for index, value in enumerate(message.temperatures):
                self.battery_temperatures[index].update(value)
            self.battery_ic_temperature.update(message.ic_temperature)
            self.battery_state.update(message.battery_state)
            self.battery_charge_state.update(message.charge_state)
            self.battery_discharge_state.update(message.discharge_state)
        elif isinstance(message, BatteryUptime):
            self.battery_uptime_ms.update(message.uptime_ms)
        elif isinstance(message, ThrottleStatus):
            self.throttle_value.update(message.value)
            self.throttle_errors.update(message.errors)
        elif isinstance(message, StatusMessage1):
            self.motor_rpm.update(message.rpm)
            self.motor_current.update(message.total_current)
            self.motor_duty_cycle.update(message.duty_cycle)
        elif isinstance(message, StatusMessage4):
            self.motor_battery_current.update(message.total_input_current)
            self.motor_fet_temperature.update(message.fet_temp)
            self.motor_temperature.update(message.motor_temp)
        elif isinstance(message, StatusMessage5):
            self.motor_battery_voltage.update(message.input_voltage)
        elif isinstance(message, MpptMessage):
            return self._ingest_mppt(message)
        elif isinstance(message, GnssSpeedAndHeading):
            self.speed_kmh.update(message.speed_kmh)
        elif isinstance(message, GnssDateTime):
            self.time.update(message)
        elif isinstance(message, GnssStatus):
            self.gnss_fix.update(message.fix != 0)
        elif isinstance(message, GnssLatitude):
            self.gnss_latitude.update(message.latitude)
        elif isinstance(message, GnssLongitude):
            self.gnss_longitude.update(message.longitude)
        else:
            # VESC status 2/3, throttle commands and config carry nothing we display
            return False
        return True

    def _ingest_mppt(self, message: MpptMessage) -> bool:
        info = message.info
        if not isinstance(info, MpptChannelPower):
            return False
        panel = MPPT_PANEL_MAP.get((message.mppt_id, info.channel))
        if panel is None:
            logger.debug("Ignoring unmapped MPPT %d channel %d", message.mppt_id, info.channel)
            return False
        self.mppt_panel_info[panel].update((info.power, info.voltage_in, info.current_in))
        return True

    def _update_cell_voltages(self, offset: int, values) -> None:
        for index, value in enumerate(values):
            self.battery_cell_voltages[offset + index].update(value)

    def set_ip_address(self, address) -> None:
        """Record the host's IP address (supplied by the environment)."""
        self.ip_address.update(ipaddress.IPv4Address(address))

    def set_charging_disabled(self, disabled: bool) -> None:
        self.charging_disabled.update(bool(disabled))

    def as_dict(self) -> Dict[str, Any]:
        """Return the current fresh value of every field (None when stale)."""
        out: Dict[str, Any] = {}
        for name, cell in vars(self).items():
            if name.startswith('_') or name == 'ttl':
                continue
            if isinstance(cell, list):
                out[name] = [_plain(c.get()) for c in cell]
            else:
                out[name] = _plain(cell.get())
        return out


def _plain(value: Optional[Any]) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, tuple):
        return list(value)
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if hasattr(value, '__dataclass_fields__'):
        return asdict(value)
    return str(value)
