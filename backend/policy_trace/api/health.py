"""
Operational endpoints — store liveness and the Prometheus scrape target.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text

from policy_trace.api.deps import get_store
from policy_trace.config import settings
from policy_trace.database import Store
from policy_trace.schemas.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ops"])


@router.get("/api/health", response_model=HealthResponse)
async def health_check(store: Store = Depends(get_store)):
    components: dict = {}
    try:
        async with store.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        components["database"] = {"status": "connected"}
    except Exception as exc:
        logger.warning("Health check could not reach the store: %s", exc)
        components["database"] = {"status": "disconnected", "error": str(exc)}

    overall = "healthy" if components["database"]["status"] == "connected" else "unhealthy"
    return HealthResponse(
        status=overall,
        environment=settings.environment,
        components=components,
    )


@router.get("/metrics")
async def prometheus_metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
