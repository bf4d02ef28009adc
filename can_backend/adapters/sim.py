import queue
import threading
import time
from typing import Optional, Iterable
from .interface import Frame
from can_backend import metrics


class SimAdapter:
    """In-memory simulated bus used by tests and the API playground.

    Frames passed to ``send()`` are looped back to ``recv()``/``iter_recv()``.
    ``inject()`` adds a frame as if another node had transmitted it.

    Usage:
      a = SimAdapter()
      a.open()
      a.inject(Frame(...))
      f = a.recv()
      a.close()
    """

    def __init__(self, loopback: bool = True) -> None:
        self._q: queue.Queue[Frame] = queue.Queue()
        self._loopback = loopback
        self._running = False
        self._filters = None
        self._lock = threading.Lock()
        # frames handed to send(), kept for inspection
        self.sent: list[Frame] = []

    def open(self) -> None:
        with self._lock:
            self._running = True

    def close(self) -> None:
        with self._lock:
            self._running = False
        while not self._q.empty():
            try:
                self._q.get_nowait()
            except queue.Empty:
                break

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._running

    def send(self, frame: Frame) -> None:
        """Record a transmitted frame and loop it back to receivers."""
        if not self.is_open:
            raise RuntimeError('Sim bus not open')
        # copy so later mutation by the caller does not leak into the queue
        f = Frame(can_id=frame.can_id, data=bytes(frame.data or b''),
                  timestamp=frame.timestamp, is_extended=frame.is_extended)
        self.sent.append(f)
        metrics.inc("sim_send")
        if self._loopback:
            self._q.put(f)

    def inject(self, frame: Frame) -> None:
        """Enqueue a frame as if it had been received from another node."""
        if frame.timestamp is None:
            frame = Frame(can_id=frame.can_id, data=bytes(frame.data or b''),
                          timestamp=time.time(), is_extended=frame.is_extended)
        self._q.put(frame)
        metrics.inc("sim_inject")

    def recv(self, timeout: Optional[float] = None) -> Optional[Frame]:
        end = None if timeout is None else (time.monotonic() + float(timeout))
        while True:
            remaining = None if end is None else max(0.0, end - time.monotonic())
            try:
                f = self._q.get(timeout=remaining)
            except queue.Empty:
                return None
            if self._frame_matches_filters(f):
                metrics.inc("sim_recv")
                return f
            if end is not None and time.monotonic() >= end:
                return None

    def iter_recv(self) -> Iterable[Frame]:
        """Yield frames until adapter is closed."""
        while True:
            with self._lock:
                if not self._running and self._q.empty():
                    break
            try:
                f = self._q.get(timeout=0.5)
            except queue.Empty:
                continue
            if not self._frame_matches_filters(f):
                continue
            metrics.inc("sim_recv")
            yield f

    def set_filters(self, filters):
        """Store filters for the simulator. Filters are honored by recv/iter_recv."""
        self._filters = list(filters) if filters is not None else None

    def _frame_matches_filters(self, frame: Frame) -> bool:
        """Return True if the given frame matches the configured filters.

        Filters are dicts containing at least 'can_id' and optionally
        'can_mask' and 'extended'. If no filters are set, all frames match.
        """
        if self._filters is None:
            return True
        for f in self._filters:
            fid = int(f.get('can_id', 0))
            extended = bool(f.get('extended', False))
            mask = f.get('can_mask')
            mask = int(mask) if mask is not None else (0x1FFFFFFF if extended else 0x7FF)
            if (int(frame.can_id) & mask) == (fid & mask):
                return True
        return False
