from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salonboard.api.routes import cache, router as api_router
from salonboard.config.settings import get_settings
from salonboard.storage.database import init_db
from salonboard.utils.logging_config import setup_logging


logger = setup_logging()
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    description="Day board for salon and grooming stations: timeline, availability and appointment edits",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.app_name}...")
    init_db()
    logger.info("Database initialized")
    logger.info(f"Interval: {settings.interval_minutes} min, timezone: {settings.business_timezone}")
    logger.info(f"Snapshot cache: {'on' if settings.cache_enabled else 'off'}")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.app_name}...")

app.include_router(api_router, prefix="/api/v1", tags=["board"])


@app.get("/health", tags=["health"])
def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {
        "status": "ok",
        "app": settings.app_name,
        "version": "1.0.0",
        "cache": "disabled" if not cache.enabled else ("up" if cache.health_check() else "down"),
    }
