"""
Bounded, de-duplicating buffer of the latest frame per CAN identifier.

The receive side inserts every frame it sees; the consumer periodically
iterates the collected frames, decodes them and clears the collector. Only
the newest frame per identifier is kept, so a chatty device cannot starve the
others, and the number of stored frames never exceeds ``capacity``.
"""
import logging
from collections import OrderedDict
from typing import Iterator, List, Tuple, Union

from eoi_telemetry.constants import DEFAULT_COLLECTOR_CAPACITY
from eoi_telemetry.models.can_frame import CanFrame

logger = logging.getLogger(__name__)


class FrameCollector:
    """Latest-frame-per-identifier store with FIFO eviction.

    Inserting a frame whose identifier is already stored replaces the stored
    frame (the entry becomes the newest). Inserting a new identifier when the
    collector is full evicts the oldest entry first. Both cases count towards
    ``dropped_frames``; they are also tracked separately as
    ``superseded_frames`` and ``evicted_frames``.

    The collector itself is not thread-safe. Callers sharing it between a
    receive thread and a consumer guard it with a lock.

    Attributes:
        capacity: Maximum number of distinct identifiers held at once
        superseded_frames: Frames replaced by a newer frame with the same id
        evicted_frames: Frames discarded because the collector was full
    """

    def __init__(self, capacity: int = DEFAULT_COLLECTOR_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._frames: "OrderedDict[Tuple[bool, int], CanFrame]" = OrderedDict()
        self.superseded_frames = 0
        self.evicted_frames = 0

    def insert(self, frame: CanFrame) -> None:
        """Store ``frame``, replacing or evicting as needed. Never blocks."""
        key = frame.key
        if key in self._frames:
            self.superseded_frames += 1
            del self._frames[key]
        elif len(self._frames) >= self.capacity:
            self.evicted_frames += 1
            _, evicted = self._frames.popitem(last=False)
            logger.debug("Collector full, evicted %r", evicted)
        self._frames[key] = frame

    def iter(self) -> Iterator[CanFrame]:
        """Iterate the stored frames, oldest first.

        Each call starts a fresh pass over a copy of the current contents, so
        the collector may be cleared while the iterator is consumed.
        """
        return iter(list(self._frames.values()))

    def __iter__(self) -> Iterator[CanFrame]:
        return self.iter()

    def __len__(self) -> int:
        return len(self._frames)

    def __contains__(self, item: Union[CanFrame, Tuple[bool, int]]) -> bool:
        key = item.key if isinstance(item, CanFrame) else item
        return key in self._frames

    def drain(self) -> List[CanFrame]:
        """Return all stored frames and clear the collector."""
        frames = list(self._frames.values())
        self.clear()
        return frames

    def clear(self) -> None:
        """Drop all frames and reset the drop counters."""
        self._frames.clear()
        self.superseded_frames = 0
        self.evicted_frames = 0

    @property
    def dropped_frames(self) -> int:
        return self.superseded_frames + self.evicted_frames

    def get_dropped_frames(self) -> int:
        return self.dropped_frames

    def __repr__(self) -> str:
        return (f"FrameCollector(size={len(self._frames)}, capacity={self.capacity}, "
                f"dropped={self.dropped_frames})")
