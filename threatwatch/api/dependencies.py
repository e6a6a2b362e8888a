"""
ThreatWatch API Dependencies
"""

from fastapi import HTTPException, Request

from ..detection import ThreatDetectionEngine


def get_engine(request: Request) -> ThreatDetectionEngine:
    """Return the engine owned by the application lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None or not engine.is_running:
        raise HTTPException(status_code=503, detail="Threat detection engine not initialized")
    return engine
