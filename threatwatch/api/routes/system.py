"""
ThreatWatch System API Routes
"""

from typing import Any, Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter()


class SystemStatusResponse(BaseModel):
    """System status response."""
    status: str
    version: str
    components: Dict[str, Any]


@router.get("/status", response_model=SystemStatusResponse)
async def get_system_status(request: Request):
    """Get system health status."""
    from ... import __version__

    components: Dict[str, Any] = {
        "detection_engine": {"status": "unknown"},
        "websocket": {"status": "unknown"},
    }

    engine = getattr(request.app.state, "engine", None)
    if engine:
        stats = engine.get_stats()
        components["detection_engine"] = {
            "status": "healthy" if stats.get("initialized") else "stopped",
            **stats,
        }

    ws_manager = getattr(request.app.state, "ws_manager", None)
    if ws_manager:
        components["websocket"] = {
            "status": "healthy",
            "connections": ws_manager.get_connection_count(),
            "channels": ws_manager.get_channel_counts(),
        }

    healthy = bool(engine and engine.is_running)
    return SystemStatusResponse(
        status="healthy" if healthy else "degraded",
        version=__version__,
        components=components,
    )
