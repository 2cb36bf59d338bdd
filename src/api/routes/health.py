from datetime import datetime, timezone

from fastapi import APIRouter

from src.services.ai.providers import get_ai_provider
from src.services.ai.resilience import get_ai_service

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    """Liveness plus the AI circuit breaker state."""
    service = get_ai_service()
    ai = {"provider": get_ai_provider(), "available": service is not None}
    if service is not None:
        ai.update(
            {"healthy": service.is_healthy(), "circuitState": service.get_circuit_state(), "stats": service.get_stats()}
        )
    healthy = service is not None and service.is_healthy()
    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ai": ai,
    }
