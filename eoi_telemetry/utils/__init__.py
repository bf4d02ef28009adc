"""
Utility modules for the telemetry host.

This package contains:
- derived: Power figures and min/max/avg summaries computed from the snapshot
- network: Wireless IPv4 address of the host
"""

from eoi_telemetry.utils.derived import (
    cell_voltage_summary,
    derived_values,
    net_power,
    scale_to_range,
    temperature_summary,
)
from eoi_telemetry.utils.network import wifi_ip_address

__all__ = [
    'cell_voltage_summary',
    'derived_values',
    'net_power',
    'scale_to_range',
    'temperature_summary',
    'wifi_ip_address',
]
