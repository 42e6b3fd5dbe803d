from fastapi import APIRouter
from typing import Dict, Any
from ..config import settings

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that reports which integrations are configured"""

    components = {
        "chain": settings.has_chain_credentials,
        "convex": settings.has_convex,
        "relay": bool(settings.relay_base_url),
        "cron": bool(settings.cron_schedule_id),
    }

    # Executing sessions needs both the chain and the attempt log
    ready = components["chain"] and components["convex"]

    return {
        "status": "healthy" if ready else "degraded",
        "chain_id": settings.chain_id,
        "components": components,
        "configured_components": sum(1 for ok in components.values() if ok),
        "total_components": len(components),
    }
