"""Metrics API routes for observability."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter

from pastcare_core.api.deps import CurrentUser
from pastcare_core.observability.metrics import get_collector

router = APIRouter(prefix="/api", tags=["metrics"])


@router.get("/metrics")
async def get_metrics(_user: CurrentUser) -> dict[str, Any]:
    """Get in-process application metrics (requires authentication).

    Includes search request counts by outcome and search durations.
    """
    return {
        "collected_at": datetime.now(timezone.utc).isoformat(),
        "application": get_collector().get_all(),
    }
