"""
CAN Service for managing CAN bus adapters and frame transmission.

This service encapsulates CAN adapter management: connecting to an adapter
by name with retries, sending frames and disconnecting. Frames are read by
the telemetry pipeline through ``AdapterFrameSource``.
"""
import logging
import time
from typing import Optional

from can_backend.adapters import Adapter, Frame, PythonCanAdapter, SimAdapter, SocketCanAdapter
from eoi_telemetry.config import CanSettings
from eoi_telemetry.exceptions import CanAdapterError, TransportError
from eoi_telemetry.models.can_frame import CanFrame

logger = logging.getLogger(__name__)

ADAPTER_TYPES = ('sim', 'python-can', 'socketcan')


def to_can_frame(frame: Frame) -> CanFrame:
    """Convert an adapter-level frame into the core ``CanFrame``.

    Raises:
        ValueError: If the adapter produced an out-of-range id or payload
    """
    return CanFrame(
        can_id=int(frame.can_id),
        data=bytes(frame.data or b''),
        is_extended=bool(frame.is_extended),
        timestamp=frame.timestamp,
    )


def from_can_frame(frame: CanFrame) -> Frame:
    """Convert a core ``CanFrame`` into an adapter-level frame for sending."""
    return Frame(can_id=frame.can_id, data=frame.data, timestamp=frame.timestamp,
                 is_extended=frame.is_extended)


class CanService:
    """Service for managing CAN bus adapters and frame operations.

    Attributes:
        adapter: Current CAN adapter instance (None when disconnected)
        adapter_name: Name of the connected adapter type
        settings: CAN settings used for the next connect
    """

    def __init__(self, settings: Optional[CanSettings] = None):
        self.settings = settings or CanSettings()
        self.adapter: Optional[Adapter] = None
        self.adapter_name: Optional[str] = None

    def _create_adapter(self, adapter_type: str) -> Adapter:
        if adapter_type == 'sim':
            return SimAdapter()
        if adapter_type == 'python-can':
            return PythonCanAdapter(channel=self.settings.channel, bitrate=self.settings.bitrate * 1000,
                                    interface=self.settings.interface)
        if adapter_type == 'socketcan':
            return SocketCanAdapter(channel=self.settings.channel)
        raise ValueError(f"Unknown adapter type: {adapter_type}")

    def connect(self, adapter_type: Optional[str] = None, max_retries: int = 3,
                retry_delay: float = 0.5) -> bool:
        """Connect to a CAN adapter of the specified type with retry logic.

        Args:
            adapter_type: 'sim', 'python-can' or 'socketcan' (defaults to settings)
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Returns:
            True if connection successful, False if already connected

        Raises:
            ValueError: If adapter_type is not supported
            CanAdapterError: If adapter initialization fails after retries
        """
        if self.is_connected():
            logger.warning("Attempted to connect when adapter already connected")
            return False

        adapter_type = adapter_type or self.settings.adapter_type
        if adapter_type not in ADAPTER_TYPES:
            raise ValueError(f"Unknown adapter type: {adapter_type}")
        logger.info(f"Connecting to adapter type: {adapter_type}")

        last_error: Optional[Exception] = None
        for attempt in range(max_retries):
            try:
                adapter = self._create_adapter(adapter_type)
                adapter.open()
            except Exception as e:
                last_error = e
                if attempt < max_retries - 1:
                    logger.warning(f"Connection attempt {attempt + 1}/{max_retries} failed: {e}, retrying...")
                    time.sleep(retry_delay)
                continue

            self.adapter = adapter
            self.adapter_name = adapter_type
            logger.info(f"Successfully connected to {adapter_type} adapter")
            return True

        raise CanAdapterError(f"Failed to connect to {adapter_type} after {max_retries} attempts: {last_error}",
                              adapter_type=adapter_type, operation='connect', original_error=last_error)

    def disconnect(self):
        """Disconnect from the current adapter and clean up resources."""
        if not self.is_connected():
            logger.debug("Attempted to disconnect when no adapter connected")
            return

        logger.info("Disconnecting adapter...")
        try:
            self.adapter.close()
        except Exception as e:
            logger.warning(f"Error closing adapter: {e}", exc_info=True)
        self.adapter = None
        self.adapter_name = None
        logger.info("Adapter disconnected and cleaned up")

    def is_connected(self) -> bool:
        """Check if an adapter is currently connected."""
        return self.adapter is not None

    def send_frame(self, frame: CanFrame) -> None:
        """Send a CAN frame through the connected adapter.

        Raises:
            RuntimeError: If no adapter is connected
            TransportError: If the adapter fails to transmit
        """
        if not self.is_connected():
            raise RuntimeError("Cannot send frame: no adapter connected")
        try:
            self.adapter.send(from_can_frame(frame))
        except Exception as e:
            raise TransportError(f"Failed to send frame 0x{frame.can_id:X}: {e}",
                                 adapter_type=self.adapter_name, operation='send', original_error=e) from e
        logger.debug(f"Sent frame: can_id=0x{frame.can_id:X} data={frame.data_hex}")

