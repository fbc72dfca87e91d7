"""GET /api/calima - Saharan dust status at a point."""

from fastapi import APIRouter, Query

from ..schemas.calima import CalimaResponse
from ..services.calima import fetch_calima_status

router = APIRouter()


@router.get("/calima", response_model=CalimaResponse)
async def calima_status(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
):
    status = await fetch_calima_status(lat, lon)
    if status is None:
        return CalimaResponse(available=False)
    return CalimaResponse(
        available=True,
        is_detected=status.is_detected,
        is_severe=status.is_severe,
        pm10=status.pm10,
        timestamp=status.timestamp,
    )
