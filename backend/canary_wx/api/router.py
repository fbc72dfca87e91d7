"""Top-level API router aggregation."""

from fastapi import APIRouter

from . import calima, climate, health, stations, weather

api_router = APIRouter(prefix="/api")

api_router.include_router(stations.router)
api_router.include_router(weather.router)
api_router.include_router(climate.router)
api_router.include_router(calima.router)
api_router.include_router(health.router)
