"""
ThreatWatch Detections API Routes
"""

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..dependencies import get_engine
from ...detection import ThreatDetectionEngine

router = APIRouter()


class DetectionListResponse(BaseModel):
    """Detection list response."""
    detections: List[dict]
    count: int


class ThreatStatisticsResponse(BaseModel):
    """Threat statistics over retained results."""
    total: int
    by_level: Dict[str, int]
    by_type: Dict[str, int]
    average_risk_score: float


@router.get("", response_model=DetectionListResponse)
async def get_detections(
    limit: int = Query(100, ge=1, le=1000),
    engine: ThreatDetectionEngine = Depends(get_engine),
):
    """Most recent detection results, newest first."""
    results = engine.get_detection_results(limit)
    return DetectionListResponse(
        detections=[r.to_dict() for r in results],
        count=len(results),
    )


@router.get("/statistics", response_model=ThreatStatisticsResponse)
async def get_statistics(
    engine: ThreatDetectionEngine = Depends(get_engine),
):
    """Counts by threat level and type plus the mean risk score."""
    return ThreatStatisticsResponse(**engine.get_threat_statistics())


@router.get("/{detection_id}")
async def get_detection(
    detection_id: str,
    engine: ThreatDetectionEngine = Depends(get_engine),
):
    """Get a single retained detection result."""
    result = engine.results.get_by_id(detection_id)
    if not result:
        raise HTTPException(status_code=404, detail="Detection not found")
    return result.to_dict()
