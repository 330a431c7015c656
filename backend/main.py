"""
Jetset Trip Generator API - FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# .env must be loaded before settings are read
load_dotenv()

from backend.routes.trips import router as trips_router
from backend.utils.config import settings

API_VERSION = "1.0.0"


def create_app() -> FastAPI:
    """Build the API with CORS for the configured client origins."""
    app = FastAPI(
        title="Jetset Trip Generator API",
        description="AI trip generation with output repair, retries and batch scheduling",
        version=API_VERSION
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {
            "service": "Jetset Trip Generator API",
            "status": "running",
            "version": API_VERSION
        }

    @app.get("/health")
    async def health_check():
        """Reports which upstream credentials are configured; makes no upstream calls."""
        return {
            "status": "healthy",
            "llm": "configured" if settings.openai_api_key else "missing_api_key",
            "places": "configured" if settings.google_maps_api_key else "missing_api_key",
            "environment": settings.environment,
        }

    app.include_router(trips_router)
    return app


app = create_app()
