from fastapi import APIRouter
from can_backend import metrics

router = APIRouter()


@router.get("/api/metrics")
def get_metrics():
    """Return current in-memory metrics counters (adapters and telemetry pipeline)."""
    return metrics.get_all()
