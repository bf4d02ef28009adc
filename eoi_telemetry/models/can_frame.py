"""
CAN Frame model for representing CAN bus frames.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

from eoi_telemetry.constants import (
    CAN_FRAME_MAX_LENGTH, CAN_ID_MAX_EXTENDED, CAN_ID_MAX_STANDARD, CAN_ID_MIN,
)


@dataclass(frozen=True)
class CanFrame:
    """Represents a CAN bus frame with ID, data, and optional timestamp.

    Frames are immutable once constructed. Two frames are equal when their
    identifier, identifier format and payload match; the receive timestamp is
    not part of equality.

    Attributes:
        can_id: CAN identifier (0-0x7FF for standard, 0-0x1FFFFFFF for extended)
        data: Frame data bytes (up to 8 bytes for classic CAN)
        is_extended: True for a 29-bit identifier, False for 11-bit
        timestamp: Optional timestamp when frame was received
    """
    can_id: int
    data: bytes = b''
    is_extended: bool = False
    timestamp: Optional[float] = field(default=None, compare=False)

    def __post_init__(self):
        """Validate frame data after initialization."""
        if isinstance(self.data, (bytearray, memoryview, list, tuple)):
            object.__setattr__(self, 'data', bytes(self.data))
        if not isinstance(self.data, bytes):
            raise TypeError(f"data must be bytes, got {type(self.data)}")
        if len(self.data) > CAN_FRAME_MAX_LENGTH:
            raise ValueError(f"CAN data length must be <= 8 bytes, got {len(self.data)}")
        id_max = CAN_ID_MAX_EXTENDED if self.is_extended else CAN_ID_MAX_STANDARD
        if not (CAN_ID_MIN <= self.can_id <= id_max):
            raise ValueError(f"CAN ID out of range: 0x{self.can_id:X}")

    @classmethod
    def from_id(cls, raw_id: int, data: bytes = b'', timestamp: Optional[float] = None) -> 'CanFrame':
        """Build a frame, tagging ids above 0x7FF as extended."""
        return cls(can_id=raw_id, data=data, is_extended=raw_id > CAN_ID_MAX_STANDARD,
                   timestamp=timestamp)

    @property
    def key(self) -> Tuple[bool, int]:
        """Collector key: the tagged identifier without the payload."""
        return (self.is_extended, self.can_id)

    @property
    def data_hex(self) -> str:
        """Return frame data as hexadecimal string."""
        return self.data.hex()

    @property
    def data_length(self) -> int:
        """Return frame data length."""
        return len(self.data)

    def __repr__(self) -> str:
        can_id = f"0x{self.can_id:08X}" if self.is_extended else f"0x{self.can_id:04X}"
        data = ", ".join(f"0x{b:02X}" for b in self.data)
        return f"CanFrame {{ id: {can_id}, data: [{data}] }}"
