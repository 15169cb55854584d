import platform
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from mpesa_relay import __version__
from mpesa_relay.api.dependencies import get_config
from mpesa_relay.utils.config_loader import RelayConfig

router = APIRouter()


def _uptime(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_at, 3)


def _memory() -> Dict[str, Any]:
    if sys.platform.startswith("win"):
        return {}
    import resource

    usage = resource.getrusage(resource.RUSAGE_SELF)
    return {"max_rss_kb": usage.ru_maxrss}


@router.get("/health", tags=["System"])
async def health(request: Request, config: RelayConfig = Depends(get_config)) -> Dict[str, Any]:
    return {
        "status": "healthy",
        "service": config.server.service_name,
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": config.server.environment,
        "integrations_mode": config.integrations_mode,
        "uptime": _uptime(request),
        "endpoints": config.public_endpoints(),
    }


@router.get("/metrics", tags=["System"])
async def metrics(request: Request) -> Dict[str, Any]:
    return {
        "uptime": _uptime(request),
        "memory": _memory(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "python_version": platform.python_version(),
        "platform": sys.platform,
        "rate_limit": request.app.state.rate_limiter.get_stats(),
    }
