"""
Concurrency topologies connecting a frame source to the telemetry snapshot.

Two interchangeable pipelines are provided:

- ``ChannelPipeline``: the receive task decodes every frame as it arrives and
  pushes the decoded record onto a bounded ``asyncio.Queue``. The consumer
  tick drains the queue without blocking and ingests each record.
- ``SharedCollectorPipeline``: the receive side only inserts raw frames into a
  lock-guarded :class:`FrameCollector`. The consumer tick takes the lock,
  drains and clears the collector, releases the lock, then decodes and
  ingests. ``insert()`` is thread-safe, so frames may also be fed from a
  reader thread.

In both, the snapshot is touched by the consumer tick only. The receive task
waits at most ``drain_timeout`` for each frame, and the render tick runs on
its own period whatever the bus is doing.
"""
import asyncio
import inspect
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from can_backend import metrics
from can_backend.adapters import Adapter
from eoi_telemetry.config import PipelineSettings
from eoi_telemetry.constants import (
    ADAPTER_POLL_TIMEOUT, CAN_ID_KEEPALIVE, CHANNEL_POLICY_DROP, DEFAULT_KEEPALIVE_PERIOD,
    KEEPALIVE_PAYLOAD, TOPOLOGY_CHANNEL, TOPOLOGY_COLLECTOR,
)
from eoi_telemetry.exceptions import ConfigurationError, TransportError
from eoi_telemetry.models.can_frame import CanFrame
from eoi_telemetry.models.snapshot import TelemetrySnapshot
from eoi_telemetry.services import frame_codec
from eoi_telemetry.services.can_service import from_can_frame, to_can_frame
from eoi_telemetry.services.frame_collector import FrameCollector

logger = logging.getLogger(__name__)

RenderCallback = Callable[[TelemetrySnapshot], Union[None, Awaitable[None]]]
AddressLookup = Callable[[], Optional[str]]


class FrameSource(Protocol):
    """Asynchronous "read next frame" operation.

    ``read_frame(timeout)`` waits at most ``timeout`` seconds (``None`` lets
    the source pick its own poll interval) and returns ``None`` when no frame
    arrived in that time. It raises :class:`TransportError` when the bus can
    no longer be read. A timed-out read must not consume a frame.
    """

    async def read_frame(self, timeout: Optional[float] = None) -> Optional[CanFrame]:
        ...


class FrameSink(Protocol):
    """"Write frame" operation used for outbound keep-alive frames."""

    def send(self, frame: CanFrame) -> Any:
        ...


class AdapterFrameSource:
    """Reads frames from a blocking ``can_backend`` adapter in a worker thread.

    The timeout is handed to the adapter's ``recv`` so every read returns on
    its own; the source never abandons a thread that is still reading.
    """

    def __init__(self, adapter: Adapter, poll_timeout: float = ADAPTER_POLL_TIMEOUT):
        self.adapter = adapter
        self.poll_timeout = poll_timeout

    async def read_frame(self, timeout: Optional[float] = None) -> Optional[CanFrame]:
        wait = self.poll_timeout if timeout is None else timeout
        try:
            frame = await asyncio.to_thread(self.adapter.recv, wait)
        except Exception as e:
            raise TransportError(f"Failed to read from adapter: {e}", operation='recv',
                                 original_error=e) from e
        if frame is None:
            return None
        try:
            return to_can_frame(frame)
        except ValueError as e:
            logger.debug("Discarding malformed frame from adapter: %s", e)
            return None


class AdapterFrameSink:
    """Sends frames through a ``can_backend`` adapter from a worker thread."""

    def __init__(self, adapter: Adapter):
        self.adapter = adapter

    async def send(self, frame: CanFrame) -> None:
        try:
            await asyncio.to_thread(self.adapter.send, from_can_frame(frame))
        except Exception as e:
            raise TransportError(f"Failed to send frame 0x{frame.can_id:X}: {e}", operation='send',
                                 original_error=e) from e


class QueueFrameSource:
    """Frame source backed by an ``asyncio.Queue``, for simulation and tests.

    Putting an exception instance on the queue makes the next ``read_frame()``
    raise it as a :class:`TransportError`.
    """

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()

    async def put(self, item: Union[CanFrame, BaseException]) -> None:
        await self.queue.put(item)

    def put_nowait(self, item: Union[CanFrame, BaseException]) -> None:
        self.queue.put_nowait(item)

    async def read_frame(self, timeout: Optional[float] = None) -> Optional[CanFrame]:
        try:
            item = await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if isinstance(item, TransportError):
            raise item
        if isinstance(item, BaseException):
            raise TransportError(f"Frame source failed: {item}", operation='recv', original_error=item)
        return item


@dataclass
class PipelineStats:
    """Counters kept by a running pipeline. Mirrored into ``can_backend.metrics``."""
    frames_received: int = 0
    frames_decoded: int = 0
    frames_unrecognized: int = 0
    messages_ingested: int = 0
    channel_dropped: int = 0
    collector_dropped: int = 0
    render_ticks: int = 0
    keepalives_sent: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def _count(stats: Optional[PipelineStats], name: str, n: int = 1) -> None:
    if n <= 0:
        return
    if stats is not None:
        setattr(stats, name, getattr(stats, name) + n)
    metrics.inc(f"telemetry_{name}", n)


@dataclass
class PipelineContext:
    """Everything a pipeline shares between its tasks."""
    snapshot: TelemetrySnapshot
    stats: PipelineStats = field(default_factory=PipelineStats)
    collector: Optional[FrameCollector] = None
    lock: threading.Lock = field(default_factory=threading.Lock)


async def _maybe_await(result) -> None:
    if inspect.isawaitable(result):
        await result


async def run_render_loop(period: float, on_render: Callable[[], Any]) -> None:
    """Call ``on_render`` every ``period`` seconds until cancelled.

    Ticks are scheduled on a fixed cadence. When a tick overruns, missed ticks
    are skipped rather than replayed.
    """
    loop = asyncio.get_running_loop()
    next_tick = loop.time()
    while True:
        await _maybe_await(on_render())
        next_tick += period
        delay = next_tick - loop.time()
        if delay < 0:
            next_tick = loop.time()
            delay = 0
        await asyncio.sleep(delay)


async def run_keepalive_loop(sink: FrameSink, period: float = DEFAULT_KEEPALIVE_PERIOD,
                             stats: Optional[PipelineStats] = None) -> None:
    """Transmit the keep-alive frame every ``period`` seconds until cancelled.

    A failed transmission is logged and retried on the next period.
    """
    frame = CanFrame(can_id=CAN_ID_KEEPALIVE, data=KEEPALIVE_PAYLOAD)
    while True:
        try:
            await _maybe_await(sink.send(frame))
        except TransportError as e:
            logger.error("Failed to send keep-alive frame: %s", e)
        else:
            _count(stats, 'keepalives_sent')
        await asyncio.sleep(period)


class _Pipeline(ABC):
    """Shared task management for both topologies."""

    topology: str = ''

    def __init__(self, source: Optional[FrameSource] = None, settings: Optional[PipelineSettings] = None,
                 snapshot: Optional[TelemetrySnapshot] = None, sink: Optional[FrameSink] = None,
                 on_render: Optional[RenderCallback] = None,
                 address_lookup: Optional[AddressLookup] = None):
        self.settings = settings or PipelineSettings()
        self.source = source
        self.sink = sink
        self.on_render = on_render
        self.address_lookup = address_lookup
        self.context = PipelineContext(snapshot=snapshot or TelemetrySnapshot(ttl=self.settings.stale_ttl))
        self._tasks: List[asyncio.Task] = []

    @property
    def snapshot(self) -> TelemetrySnapshot:
        return self.context.snapshot

    @property
    def stats(self) -> PipelineStats:
        return self.context.stats

    def _ingest(self, message) -> None:
        if self.snapshot.ingest(message):
            _count(self.stats, 'messages_ingested')

    def _decode(self, frame: CanFrame):
        message = frame_codec.decode(frame)
        if message is None:
            _count(self.stats, 'frames_unrecognized')
            logger.debug("Unrecognized frame %r", frame)
        else:
            _count(self.stats, 'frames_decoded')
        return message

    @abstractmethod
    def consume_pending(self) -> int:
        """Fold everything received since the last tick into the snapshot."""

    @abstractmethod
    async def handle_frame(self, frame: CanFrame) -> None:
        """Receive-side handling of one frame."""

    def _refresh_address(self) -> None:
        address = self.address_lookup()
        if address is None:
            return
        try:
            self.snapshot.set_ip_address(address)
        except ValueError as e:
            logger.debug("Ignoring host address %r: %s", address, e)

    async def tick(self) -> None:
        """One consumer tick: consume pending traffic, refresh the host address, then render."""
        self.consume_pending()
        if self.address_lookup is not None:
            self._refresh_address()
        _count(self.stats, 'render_ticks')
        if self.on_render is not None:
            await _maybe_await(self.on_render(self.snapshot))

    async def _receive_loop(self) -> None:
        timeout = self.settings.drain_timeout or None
        while True:
            try:
                frame = await self.source.read_frame(timeout=timeout)
            except TransportError:
                logger.error("Receive task stopped on transport error", exc_info=True)
                raise
            if frame is None:
                continue
            _count(self.stats, 'frames_received')
            await self.handle_frame(frame)

    async def run(self) -> None:
        """Run the receive, render and keep-alive tasks until stopped.

        Raises:
            TransportError: If the receive task hit a transport failure
        """
        if self._tasks:
            raise RuntimeError("Pipeline already running")
        self._tasks.append(asyncio.create_task(
            run_render_loop(self.settings.render_period, self.tick), name='telemetry-render'))
        if self.source is not None:
            self._tasks.append(asyncio.create_task(self._receive_loop(), name='telemetry-receive'))
        if self.sink is not None and self.settings.keepalive_enabled:
            self._tasks.append(asyncio.create_task(
                run_keepalive_loop(self.sink, self.settings.keepalive_period, self.stats),
                name='telemetry-keepalive'))
        logger.info("Started %s pipeline with %d task(s)", self.topology, len(self._tasks))

        try:
            done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    raise task.exception()
        finally:
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []
            logger.info("Stopped %s pipeline: %s", self.topology, self.stats.as_dict())

    def stop(self) -> None:
        """Cancel the pipeline's tasks. ``run()`` returns once they have exited."""
        for task in self._tasks:
            task.cancel()


class ChannelPipeline(_Pipeline):
    """Decode on receipt, hand decoded records to the consumer over a bounded queue."""

    topology = TOPOLOGY_CHANNEL

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._channel: Optional[asyncio.Queue] = None

    @property
    def channel(self) -> asyncio.Queue:
        """Bounded queue of decoded records, created inside the running loop on first use."""
        if self._channel is None:
            self._channel = asyncio.Queue(maxsize=self.settings.channel_capacity)
        return self._channel

    async def handle_frame(self, frame: CanFrame) -> None:
        message = self._decode(frame)
        if message is None:
            return
        if self.settings.channel_policy == CHANNEL_POLICY_DROP:
            try:
                self.channel.put_nowait(message)
            except asyncio.QueueFull:
                _count(self.stats, 'channel_dropped')
                logger.debug("Channel full, dropped %s", type(message).__name__)
        else:
            await self.channel.put(message)

    def consume_pending(self) -> int:
        consumed = 0
        while True:
            try:
                message = self.channel.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._ingest(message)
            consumed += 1
        return consumed


class SharedCollectorPipeline(_Pipeline):
    """Collect raw frames under a lock, decode them on the consumer tick."""

    topology = TOPOLOGY_COLLECTOR

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.context.collector = FrameCollector(capacity=self.settings.collector_capacity)

    @property
    def collector(self) -> FrameCollector:
        return self.context.collector

    def insert(self, frame: CanFrame) -> None:
        """Insert a raw frame. Safe to call from any thread."""
        with self.context.lock:
            self.collector.insert(frame)

    async def handle_frame(self, frame: CanFrame) -> None:
        self.insert(frame)

    def consume_pending(self) -> int:
        with self.context.lock:
            dropped = self.collector.dropped_frames
            frames = self.collector.drain()
        if dropped:
            _count(self.stats, 'collector_dropped', dropped)
            logger.debug("Collector dropped %d frame(s) since last tick", dropped)
        for frame in frames:
            message = self._decode(frame)
            if message is not None:
                self._ingest(message)
        return len(frames)


def build_pipeline(settings: PipelineSettings, source: Optional[FrameSource] = None,
                   snapshot: Optional[TelemetrySnapshot] = None, sink: Optional[FrameSink] = None,
                   on_render: Optional[RenderCallback] = None,
                   address_lookup: Optional[AddressLookup] = None) -> _Pipeline:
    """Create the pipeline selected by ``settings.topology``.

    Raises:
        ConfigurationError: If the topology name is unknown
    """
    if settings.topology == TOPOLOGY_CHANNEL:
        cls = ChannelPipeline
    elif settings.topology == TOPOLOGY_COLLECTOR:
        cls = SharedCollectorPipeline
    else:
        raise ConfigurationError(f"Unknown pipeline topology: {settings.topology}",
                                 setting_name='topology', setting_value=settings.topology,
                                 expected=f"'{TOPOLOGY_CHANNEL}' or '{TOPOLOGY_COLLECTOR}'")
    return cls(source=source, settings=settings, snapshot=snapshot, sink=sink, on_render=on_render,
               address_lookup=address_lookup)
