"""Main FastAPI application."""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from addons_app.config import settings
from addons_app.database import init_db
from addons_app.logging_config import setup_logging
from addons_app.routers import addons, health, oauth, products

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Shopify product add-ons: add-on catalog, OAuth install and Admin API passthrough"
)

# The storefront script calls the add-on endpoints cross-origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(oauth.router, prefix="/auth", tags=["OAuth"])
app.include_router(addons.router, prefix="/api/addons", tags=["Add-ons"])
app.include_router(products.router, prefix="/api", tags=["Shopify"])


@app.get("/api")
async def api_root():
    """API information endpoint."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    }


@app.on_event("startup")
async def startup_event():
    """Configure logging and create tables on app startup."""
    setup_logging()
    init_db()
    logger.info("%s %s started", settings.app_name, settings.app_version)
