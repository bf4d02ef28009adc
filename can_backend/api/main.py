from fastapi import FastAPI, HTTPException
import asyncio
import math
import threading
import logging
from typing import Any
from contextlib import asynccontextmanager

from can_backend.adapters.sim import SimAdapter
from can_backend.adapters.interface import Frame as AdapterFrame
from can_backend.api import metrics as _metrics_module
from eoi_telemetry.config import ConfigManager
from eoi_telemetry.constants import CAN_FRAME_MAX_LENGTH, CAN_ID_MAX_EXTENDED, CAN_ID_MAX_STANDARD
from eoi_telemetry.services.can_service import to_can_frame
from eoi_telemetry.services.pipeline import SharedCollectorPipeline
from eoi_telemetry.utils.derived import derived_values
from eoi_telemetry.utils.network import wifi_ip_address

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler: start the SimAdapter reader thread and the telemetry consumer.

    The reader thread inserts every received frame into a shared-collector
    pipeline; the pipeline's render tick folds them into the snapshot served
    by ``/api/snapshot``.
    """
    settings = ConfigManager().pipeline_settings
    pipeline = SharedCollectorPipeline(settings=settings, address_lookup=wifi_ip_address)

    sim = SimAdapter()
    sim.open()

    reader_thread = threading.Thread(target=_sim_reader_loop, args=(sim, pipeline), daemon=True)
    reader_thread.start()
    consumer = asyncio.create_task(pipeline.run())

    app.state.sim = sim
    app.state.pipeline = pipeline
    app.state._reader_thread = reader_thread
    app.state._consumer = consumer

    try:
        yield
    finally:
        logger.info("Shutting down adapter and telemetry consumer...")
        sim.close()
        pipeline.stop()
        try:
            await consumer
        except asyncio.CancelledError:
            pass
        reader_thread.join(timeout=1.0)


app = FastAPI(title="EOI CAN Telemetry", lifespan=lifespan)
app.include_router(_metrics_module.router)


def _sim_reader_loop(sim: SimAdapter, pipeline: SharedCollectorPipeline):
    """Blocking thread loop: reads from sim.iter_recv() and inserts frames into the collector."""
    for frame in sim.iter_recv():
        try:
            pipeline.insert(to_can_frame(frame))
        except ValueError as e:
            logger.warning(f"Dropping invalid frame from simulator: {e}")


def _json_safe(value: Any) -> Any:
    """Replace non-finite floats (not valid JSON) with None."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


@app.get("/api/health")
def health():
    """Simple health endpoint for smoke tests."""
    return {"status": "ok", "service": "eoi-can-telemetry", "version": "0.1"}


@app.get("/api/snapshot")
def api_snapshot():
    """Return every fresh telemetry field, the derived figures and the pipeline counters.

    Stale fields are reported as null.
    """
    pipeline: SharedCollectorPipeline = getattr(app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Telemetry pipeline not running")
    snapshot = pipeline.snapshot
    return _json_safe({
        "values": snapshot.as_dict(),
        "derived": derived_values(snapshot),
        "stats": pipeline.stats.as_dict(),
    })


@app.post("/api/send-frame")
async def api_send_frame(payload: dict):
    """Inject a frame into the SimAdapter as if another node had sent it.

    Payload: { "can_id": int, "data": "hexstring", "extended": bool (optional) }
    Ids above 0x7FF are treated as extended.
    """
    can_id = payload.get("can_id")
    data_hex = payload.get("data")
    if can_id is None or data_hex is None:
        raise HTTPException(status_code=400, detail="can_id and data are required")

    try:
        can_id = int(can_id)
    except (ValueError, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid CAN ID format: {can_id}")
    if not (0 <= can_id <= CAN_ID_MAX_EXTENDED):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid CAN ID: {can_id}. Must be between 0 and 0x1FFFFFFF"
        )

    try:
        data = bytes.fromhex(str(data_hex).replace(' ', '').replace('-', ''))
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid hex data format: {str(data_hex)[:50]}")
        raise HTTPException(status_code=400, detail=f"data must be a valid hex string: {e}")

    if len(data) > CAN_FRAME_MAX_LENGTH:
        logger.warning(f"Data length {len(data)} exceeds CAN max (8 bytes)")
        raise HTTPException(
            status_code=400,
            detail=f"Data length {len(data)} exceeds maximum CAN frame size (8 bytes)"
        )

    sim: SimAdapter = getattr(app.state, "sim", None)
    if sim is None:
        raise HTTPException(status_code=503, detail="Sim adapter not available")

    extended = bool(payload.get("extended", False)) or can_id > CAN_ID_MAX_STANDARD
    sim.inject(AdapterFrame(can_id=can_id, data=data, is_extended=extended))
    logger.debug(f"Injected frame: can_id=0x{can_id:X}, data={data.hex()}")
    return {"status": "ok"}
