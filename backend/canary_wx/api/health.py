"""GET /api/health - liveness plus a few facts about the running instance."""

from fastapi import APIRouter, Depends

from ..config import settings
from ..services.station_catalog import StationCatalog
from .dependencies import get_catalog

router = APIRouter()


@router.get("/health")
def health(catalog: StationCatalog = Depends(get_catalog)):
    return {
        "status": "ok",
        "stations": len(catalog),
        "aemet_configured": bool(settings.aemet_api_key),
        "mock_weather": settings.mock_weather,
    }
