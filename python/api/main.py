"""
FastAPI Main Application

Entry point for the statement import API.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .dependencies import get_config_dir
from .routes import imports_router, rules_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting Statement Import API (config: {get_config_dir()})")
    yield
    logger.info("Shutting down Statement Import API")


app = FastAPI(
    title="Statement Import API",
    description="Parse, deduplicate, normalize and categorize bank statement transactions",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration
cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(imports_router, prefix="/api")
app.include_router(rules_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Statement Import API",
        "version": "1.0.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "endpoints": {
            "preview": "/api/imports/preview",
            "commit": "/api/imports/commit",
            "pdf": "/api/imports/pdf",
            "rules": "/api/rules",
            "learn_vendor": "/api/rules/vendors/learn",
            "learn_category": "/api/rules/categories/learn",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=os.getenv("ENVIRONMENT", "development") == "development",
    )
