"""
Configuration management for the EOI CAN telemetry host.

This module provides centralized configuration management, supporting:
- Loading from JSON config files
- Environment variable overrides
- Validation of every setting
- Process-wide logging setup (``configure_logging``)
"""

import os
import json
import logging
from dataclasses import dataclass, asdict
from typing import Optional, List
from pathlib import Path

from eoi_telemetry.constants import (
    CAN_ADAPTER_DEFAULT, CAN_BITRATE_DEFAULT, CAN_CHANNEL_DEFAULT,
    CHANNEL_POLICY_BLOCK, CHANNEL_POLICY_DROP,
    DEFAULT_CHANNEL_CAPACITY, DEFAULT_COLLECTOR_CAPACITY, DEFAULT_DRAIN_TIMEOUT,
    DEFAULT_KEEPALIVE_PERIOD, DEFAULT_RENDER_PERIOD, DEFAULT_TTL_SECONDS,
    SNAPSHOT_LOG_INTERVAL_DEFAULT, TOPOLOGY_CHANNEL, TOPOLOGY_COLLECTOR,
)
from eoi_telemetry.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)-8s %(name)s:%(lineno)d %(message)s'
VALID_ADAPTERS = {'sim', 'python-can', 'socketcan'}


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the process.

    Args:
        level: Logging level name. Defaults to the LOG_LEVEL environment
               variable, then 'INFO'.
    """
    level_name = (level or os.environ.get('LOG_LEVEL') or 'INFO').upper()
    numeric = getattr(logging, level_name, None)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)


@dataclass
class CanSettings:
    """CAN bus configuration settings.

    Attributes:
        adapter_type: Adapter to open ('socketcan', 'python-can', 'sim')
        channel: CAN channel/interface identifier (e.g., 'can0', 'vcan0')
        interface: python-can interface name when adapter_type is 'python-can'
        bitrate: CAN bitrate in kbps (e.g., 1000 for 1 Mbit/s)
    """
    adapter_type: str = CAN_ADAPTER_DEFAULT
    channel: str = CAN_CHANNEL_DEFAULT
    interface: Optional[str] = None
    bitrate: int = CAN_BITRATE_DEFAULT

    def validate(self) -> List[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors = []
        if self.adapter_type not in VALID_ADAPTERS:
            errors.append(f"Adapter type must be one of {sorted(VALID_ADAPTERS)}")
        if not self.channel or not isinstance(self.channel, str):
            errors.append("CAN channel must be a non-empty string")
        if not isinstance(self.bitrate, int) or self.bitrate <= 0:
            errors.append("CAN bitrate must be a positive integer")
        return errors


@dataclass
class PipelineSettings:
    """Telemetry pipeline settings.

    Attributes:
        topology: 'channel' (decode in the receive task) or 'collector'
                  (collect raw frames, decode on the consumer tick)
        collector_capacity: Distinct identifiers held by the frame collector
        channel_capacity: Decoded messages buffered by the channel topology
        channel_policy: 'block' or 'drop' when the channel is full
        stale_ttl: Seconds after which a telemetry value is treated as absent
        render_period: Seconds between consumer ticks
        drain_timeout: Seconds the receive task waits for a frame before polling again
        keepalive_enabled: Whether to transmit the keep-alive frame
        keepalive_period: Seconds between keep-alive frames
    """
    topology: str = TOPOLOGY_COLLECTOR
    collector_capacity: int = DEFAULT_COLLECTOR_CAPACITY
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY
    channel_policy: str = CHANNEL_POLICY_BLOCK
    stale_ttl: float = DEFAULT_TTL_SECONDS
    render_period: float = DEFAULT_RENDER_PERIOD
    drain_timeout: float = DEFAULT_DRAIN_TIMEOUT
    keepalive_enabled: bool = False
    keepalive_period: float = DEFAULT_KEEPALIVE_PERIOD

    def validate(self) -> List[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors = []
        if self.topology not in (TOPOLOGY_CHANNEL, TOPOLOGY_COLLECTOR):
            errors.append(f"Topology must be '{TOPOLOGY_CHANNEL}' or '{TOPOLOGY_COLLECTOR}'")
        if not isinstance(self.collector_capacity, int) or self.collector_capacity < 1:
            errors.append("Collector capacity must be an integer >= 1")
        if not isinstance(self.channel_capacity, int) or self.channel_capacity < 1:
            errors.append("Channel capacity must be an integer >= 1")
        if self.channel_policy not in (CHANNEL_POLICY_BLOCK, CHANNEL_POLICY_DROP):
            errors.append(f"Channel policy must be '{CHANNEL_POLICY_BLOCK}' or '{CHANNEL_POLICY_DROP}'")
        if self.stale_ttl <= 0:
            errors.append("Stale TTL must be positive")
        if self.render_period <= 0:
            errors.append("Render period must be positive")
        if self.drain_timeout < 0:
            errors.append("Drain timeout must be non-negative")
        if self.keepalive_period <= 0:
            errors.append("Keep-alive period must be positive")
        return errors


@dataclass
class AppSettings:
    """Application-level configuration settings.

    Attributes:
        log_level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
        snapshot_log_interval: Seconds between snapshot summaries logged by the host
    """
    log_level: str = 'INFO'
    snapshot_log_interval: float = SNAPSHOT_LOG_INTERVAL_DEFAULT

    def validate(self) -> List[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors = []
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if self.log_level.upper() not in valid_levels:
            errors.append(f"Log level must be one of {valid_levels}")
        if self.snapshot_log_interval <= 0:
            errors.append("Snapshot log interval must be positive")
        return errors


_ENV_OVERRIDES = (
    # (env var, section, attribute, converter)
    ('CAN_ADAPTER', 'can_settings', 'adapter_type', str),
    ('CAN_CHANNEL', 'can_settings', 'channel', str),
    ('CAN_INTERFACE', 'can_settings', 'interface', str),
    ('CAN_BITRATE', 'can_settings', 'bitrate', int),
    ('TELEMETRY_TOPOLOGY', 'pipeline_settings', 'topology', str),
    ('TELEMETRY_TTL', 'pipeline_settings', 'stale_ttl', float),
    ('LOG_LEVEL', 'app_settings', 'log_level', lambda v: v.upper()),
)


class ConfigManager:
    """Centralized configuration manager for the telemetry host.

    Configuration sources, lowest priority first:
    1. Default values
    2. Environment variables
    3. JSON config file

    Attributes:
        can_settings: CAN bus configuration
        pipeline_settings: Pipeline topology and timing
        app_settings: Application-level configuration
    """

    SECTIONS = ('can_settings', 'pipeline_settings', 'app_settings')

    def __init__(self, config_file: Optional[str] = None):
        """Initialize ConfigManager.

        Args:
            config_file: Optional path to JSON config file. If None,
                         ~/.eoi_telemetry/config.json is used when present.
        """
        self.can_settings = CanSettings()
        self.pipeline_settings = PipelineSettings()
        self.app_settings = AppSettings()
        self._config_file: Optional[str] = config_file

        self._load_from_environment()
        if config_file:
            self._load_from_file(config_file)
        else:
            self._load_from_default_locations()

        errors = self.validate()
        if errors:
            logger.warning(f"Configuration validation errors: {errors}")

    def _load_from_environment(self) -> None:
        """Apply environment variable overrides."""
        for env_name, section, attr, convert in _ENV_OVERRIDES:
            raw = os.environ.get(env_name)
            if not raw:
                continue
            try:
                setattr(getattr(self, section), attr, convert(raw))
            except (ValueError, TypeError):
                logger.warning(f"Invalid {env_name} environment variable: {raw}")

    def _load_from_file(self, file_path: str) -> bool:
        """Load configuration from JSON file.

        Unknown keys are ignored with a warning. Values are converted to the
        type of the current setting.

        Returns:
            True if loaded successfully, False otherwise
        """
        if not os.path.exists(file_path):
            logger.debug(f"Config file not found: {file_path}")
            return False

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse config file {file_path}: {e}")
            return False
        except OSError as e:
            logger.error(f"Failed to read config file {file_path}: {e}", exc_info=True)
            return False

        for section in self.SECTIONS:
            section_data = data.get(section)
            if not isinstance(section_data, dict):
                continue
            target = getattr(self, section)
            for key, value in section_data.items():
                if not hasattr(target, key):
                    logger.warning(f"Unknown setting {section}.{key} in {file_path}")
                    continue
                setattr(target, key, self._coerce(getattr(target, key), value, f"{section}.{key}"))

        self._config_file = file_path
        logger.info(f"Loaded configuration from {file_path}")
        return True

    @staticmethod
    def _coerce(current, value, name: str):
        if value is None or current is None:
            return value
        try:
            if isinstance(current, bool):
                return bool(value)
            if isinstance(current, int):
                return int(value)
            if isinstance(current, float):
                return float(value)
            if isinstance(current, str):
                return str(value)
        except (ValueError, TypeError):
            logger.warning(f"Invalid value for {name}: {value!r}")
            return current
        return value

    def _load_from_default_locations(self) -> None:
        """Try loading from the user config file."""
        user_config_file = Path.home() / '.eoi_telemetry' / 'config.json'
        if user_config_file.exists():
            self._load_from_file(str(user_config_file))

    def save_to_file(self, file_path: Optional[str] = None) -> bool:
        """Save current configuration to JSON file.

        Args:
            file_path: Optional path to save to. If None, uses the loaded file or
                       the user config file.

        Returns:
            True if saved successfully, False otherwise
        """
        save_path = file_path or self._config_file
        if not save_path:
            save_path = str(Path.home() / '.eoi_telemetry' / 'config.json')

        data = {section: asdict(getattr(self, section)) for section in self.SECTIONS}
        for section in data.values():
            for key in [k for k, v in section.items() if v is None]:
                del section[key]

        try:
            os.makedirs(os.path.dirname(os.path.abspath(save_path)), exist_ok=True)
            with open(save_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save config file {save_path}: {e}", exc_info=True)
            return False

        self._config_file = save_path
        logger.info(f"Saved configuration to {save_path}")
        return True

    def validate(self) -> List[str]:
        """Validate all configuration settings.

        Returns:
            List of error messages (empty if all valid)
        """
        errors = []
        errors.extend(self.can_settings.validate())
        errors.extend(self.pipeline_settings.validate())
        errors.extend(self.app_settings.validate())
        return errors

    def require_valid(self) -> None:
        """Raise ConfigurationError if any setting is invalid."""
        errors = self.validate()
        if errors:
            raise ConfigurationError("; ".join(errors), expected="valid configuration")
