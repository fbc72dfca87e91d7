"""FastAPI application factory and lifespan for the Canary Islands weather backend."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.router import api_router
from .config import settings
from .models.database import SessionLocal, init_database
from .services.climatology import ClimatologyService
from .services.history_store import HistoryStore
from .services.live_weather import LiveWeatherService
from .services.station_catalog import load_catalog
from .services.station_resolver import StationResolver
from .services.weather_cache import PersistentWeatherCache, RateLimitCache

# Configure logging for our app (uvicorn only configures its own loggers)
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:     %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: database, station catalog and shared services."""

    logger.info("Database: %s", settings.db_path)
    init_database()
    logger.info("Database initialized")

    # A broken catalog is a deployment error: let startup fail
    catalog = load_catalog()
    resolver = StationResolver(catalog)

    app.state.catalog = catalog
    app.state.resolver = resolver
    app.state.live_weather = LiveWeatherService(
        catalog,
        resolver,
        RateLimitCache(),
        PersistentWeatherCache(SessionLocal),
    )
    app.state.climatology = ClimatologyService(HistoryStore(SessionLocal), catalog)

    if settings.mock_weather:
        logger.warning("Mock weather is enabled; live endpoints serve canned data")
    if not settings.aemet_api_key:
        logger.info("No AEMET API key configured; live weather uses Open-Meteo only")

    yield

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Canary Islands Weather",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
