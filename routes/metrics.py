from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.automation.engine import AutomationEngine
from deps.automation import get_engine
from services.metrics import render_prometheus

router = APIRouter(tags=["metrics"])


def _gauges(engine: AutomationEngine) -> str:
    stats = engine.get_stats()
    return (
        "# TYPE processed_transactions gauge\n"
        f"processed_transactions {stats.processed_count}\n"
        "# TYPE pending_retries gauge\n"
        f"pending_retries {stats.pending_retry_count}\n"
    )


@router.get("/metrics")
def metrics(engine: AutomationEngine = Depends(get_engine)):
    body = render_prometheus() + _gauges(engine)
    return Response(content=body, media_type="text/plain; version=0.0.4")
