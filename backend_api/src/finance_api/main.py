import logging
from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from . import __version__
from .categorizer import ensure_default_categories
from .config import get_settings
from .db import create_db_and_tables, engine
from .routers import api_router
from .seed import seed_demo_data

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Application metadata and initialization with CORS.
app = FastAPI(
    title="Personal Finance Dashboard API",
    description="REST API for authentication, transactions, categories, spreadsheet import and dashboard statistics.",
    version=__version__,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=86400,
)


# Root health check
# PUBLIC_INTERFACE
@app.get("/", tags=["health"], summary="Health check")
def health_check() -> Dict[str, str]:
    """Return health message."""
    return {"message": "Healthy"}


app.include_router(api_router)


# Startup event: create tables and ensure the system categories exist.
@app.on_event("startup")
def on_startup() -> None:
    """Initialize database, default categories and, when enabled, the demo account."""
    create_db_and_tables()
    with Session(engine) as session:
        ensure_default_categories(session)
        if settings.seed_demo_data:
            seed_demo_data(session)
    logger.info("Finance dashboard API %s started", __version__)
