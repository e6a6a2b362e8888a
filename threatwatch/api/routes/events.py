"""
ThreatWatch Events API Routes
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..dependencies import get_engine
from ...detection import ThreatDetectionEngine
from ...exceptions import QueueFullError

router = APIRouter()


class EventRequest(BaseModel):
    """
    Telemetry event submitted for analysis.

    Fields beyond the ones listed are accepted and passed through to the
    engine, where signatures may reference them.
    """
    id: Optional[str] = None
    timestamp: Optional[datetime] = None
    type: str
    user_id: Optional[str] = None
    device_id: Optional[str] = None
    source_ip: Optional[str] = None

    class Config:
        extra = "allow"


@router.post("")
async def submit_event(
    request: EventRequest,
    wait: bool = Query(True, description="Wait for the detection result"),
    engine: ThreatDetectionEngine = Depends(get_engine),
):
    """
    Submit an event.

    With **wait=true** (default) the detection result is returned; otherwise
    the event is only queued and its id is returned with status 202.
    """
    payload = request.model_dump(exclude_none=True)

    try:
        if not wait:
            event_id = engine.submit(payload)
            return JSONResponse(status_code=202, content={"event_id": event_id, "status": "queued"})

        result = await engine.process_event(payload)
    except QueueFullError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return result.to_dict()
