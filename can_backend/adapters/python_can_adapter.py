from __future__ import annotations
import threading
import time
import logging
from typing import Any, Optional, Iterable

import can

from .interface import Frame
from can_backend import metrics

logger = logging.getLogger(__name__)


def frame_from_message(msg: Any) -> Frame:
    """Translate a python-can Message into an adapter Frame."""
    return Frame(
        can_id=msg.arbitration_id,
        data=bytes(msg.data or b''),
        timestamp=getattr(msg, 'timestamp', None) or time.time(),
        is_extended=bool(getattr(msg, 'is_extended_id', False)),
    )


class PythonCanAdapter:
    """Wrapper around python-can Bus that implements the project's Adapter protocol.

    Any python-can interface can be used ('socketcan', 'virtual', 'pcan', ...).
    Read errors from the bus propagate to the caller; the telemetry pipeline
    treats them as fatal for its receive task.
    """

    def __init__(self, channel: str = 'virtual', bitrate: Optional[int] = None, interface: Optional[str] = None):
        self.channel = channel
        self.bitrate = bitrate
        self.interface = interface
        self._bus: Optional[Any] = None
        self._pending_filters = None
        self._lock = threading.Lock()
        self._running = False

    def open(self) -> None:
        kwargs = {}
        if self.bitrate is not None:
            kwargs['bitrate'] = int(self.bitrate)
        with self._lock:
            if self._bus is not None:
                return
            # interface may be None for python-can to auto-select from its config
            if self.interface:
                self._bus = can.Bus(channel=self.channel, interface=self.interface, **kwargs)
            else:
                self._bus = can.Bus(channel=self.channel, **kwargs)
            self._running = True
        logger.info("Opened python-can bus: interface=%s channel=%s", self.interface, self.channel)

        # Re-apply any filters that were set before the bus was opened
        if self._pending_filters is not None:
            self.set_filters(self._pending_filters)
            self._pending_filters = None

    def close(self) -> None:
        with self._lock:
            self._running = False
            bus, self._bus = self._bus, None
        if bus is not None:
            try:
                bus.shutdown()
            except can.CanError as e:
                logger.warning("Error shutting down python-can bus: %s", e)

    def send(self, frame: Frame) -> None:
        if self._bus is None:
            raise RuntimeError('Bus not open')
        msg = can.Message(
            arbitration_id=int(frame.can_id),
            data=bytes(frame.data or b''),
            is_extended_id=frame.is_extended,
        )
        self._bus.send(msg)
        metrics.inc("python_can_send")

    def set_filters(self, filters) -> None:
        """Apply CAN filters to the underlying python-can Bus.

        `filters` is a list of dicts containing at least 'can_id' and optionally
        'can_mask' and 'extended'. Filters set before open() are applied when
        the bus opens.
        """
        if self._bus is None:
            self._pending_filters = list(filters) if filters is not None else None
            return
        can_filters = None
        if filters is not None:
            can_filters = []
            for f in filters:
                fid = int(f.get('can_id', 0))
                extended = bool(f.get('extended', False))
                mask = f.get('can_mask')
                mask = int(mask) if mask is not None else (0x1FFFFFFF if extended else 0x7FF)
                can_filters.append({'can_id': fid, 'can_mask': mask, 'extended': extended})
        logger.info('Applying python-can filters: %s', can_filters)
        self._bus.set_filters(can_filters)

    def recv(self, timeout: Optional[float] = None) -> Optional[Frame]:
        if self._bus is None:
            return None
        msg = self._bus.recv(timeout=timeout)
        if msg is None:
            return None
        if getattr(msg, 'is_error_frame', False) or getattr(msg, 'is_remote_frame', False):
            logger.debug("Skipping non-data frame: %s", msg)
            return None
        metrics.inc("python_can_recv")
        return frame_from_message(msg)

    def iter_recv(self) -> Iterable[Frame]:
        """Yield frames until the adapter is closed."""
        while True:
            with self._lock:
                if not self._running:
                    break
            f = self.recv(timeout=0.5)
            if f is not None:
                yield f
