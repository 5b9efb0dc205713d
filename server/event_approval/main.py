# event_approval/main.py

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from event_approval.core.config import settings
from event_approval.db.mongodb import mongodb
from event_approval.db.seed_data import seed_all_data
from event_approval.services.request_store import RequestStore
from event_approval.api.routes import auth, requests, reports, admin


# --- Logging Setup ---
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# --- Application Lifespan ---
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Connects to MongoDB, ensures indexes, seeds default role accounts
    (outside testing mode) and closes the connection on shutdown.
    """
    logger.info("Application startup sequence initiated...")
    await mongodb.connect()
    try:
        if settings.TESTING_MODE:
            logger.info("TESTING_MODE enabled, skipping seeding.")
            await RequestStore(mongodb.get_db()).ensure_indexes()
        else:
            await seed_all_data()
        logger.info("Application startup complete.")
        yield
    finally:
        logger.info("Application shutdown sequence initiated...")
        await mongodb.close()
        logger.info("Application shutdown complete.")


app = FastAPI(
    title=settings.APP_NAME,
    description="API for routing event requests through their approval chain.",
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    lifespan=lifespan
)


# --- Middleware Setup ---
if settings.CORS_ALLOWED_ORIGINS:
    allowed_origins = [str(origin).strip() for origin in settings.CORS_ALLOWED_ORIGINS]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info(f"CORS middleware enabled for origins: {allowed_origins}")
else:
    logger.warning("CORS_ALLOWED_ORIGINS is not set in settings. CORS middleware not added.")


# --- API Router Inclusion ---
app.include_router(auth.router, prefix=settings.API_V1_STR)
app.include_router(requests.router, prefix=settings.API_V1_STR)
app.include_router(reports.router, prefix=settings.API_V1_STR)
app.include_router(admin.router, prefix=settings.API_V1_STR)
logger.info(f"Included API routers (Auth, Requests, Reports, Admin) under prefix: {settings.API_V1_STR}")


@app.get("/", tags=["Root"])
async def read_root() -> dict[str, str]:
    """A simple root endpoint to confirm the API is running."""
    return {"message": f"Welcome to the {settings.APP_NAME} API"}


@app.get("/health", tags=["Health Check"])
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
