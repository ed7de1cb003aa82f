"""
Health Check Endpoint

Reads only lock-free state so it answers even while the registry is busy.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request):
    """Liveness probe for load balancers"""
    state = request.app.state
    return {
        "status": "healthy",
        "service": state.settings.SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage": "enabled" if state.writer.uploads_enabled else "disabled",
        "jobs": state.registry.stats(),
    }
