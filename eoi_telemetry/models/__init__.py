"""
Data models for the EOI CAN telemetry host.

Models:
- CanFrame: Represents a CAN bus frame
- Decoded message records (see messages)
- StaleValue: Value cell that expires after a time-to-live
- TelemetrySnapshot: Latest value of every telemetry field
"""

from eoi_telemetry.models.can_frame import CanFrame
from eoi_telemetry.models.stale_value import StaleValue
from eoi_telemetry.models.snapshot import MPPT_PANEL_MAP, TelemetrySnapshot

__all__ = ['CanFrame', 'StaleValue', 'TelemetrySnapshot', 'MPPT_PANEL_MAP']
