"""
Emission Factor Matcher API.

FastAPI entry point: logging setup, startup checks and router wiring.
Run locally with `python main.py` or `uvicorn main:app --reload`.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from config import settings, check_connection
from exceptions import AppError
from models.matching import MatcherConfig


def configure_logging() -> None:
    """JSON logs in production, console renderer everywhere else."""
    logging.basicConfig(format="%(message)s", level=settings.log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.is_production
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the matcher configuration and catalog size on startup."""
    matcher = MatcherConfig.from_settings(settings)
    logger.info(
        "application_starting",
        environment=settings.environment,
        enable_learning=matcher.enable_learning,
        cache_vat=matcher.cache_vat,
        base_currency=matcher.base_currency
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info(
            "catalog_loaded",
            emission_factors=db_status["emission_factors_count"],
            nace_emission_factors=db_status["nace_emission_factors_count"]
        )
    else:
        # Matching requests will fail with DATABASE_ERROR until this is fixed
        logger.error("database_connection_failed", error=db_status.get("error"))

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="Emission Factor Matcher",
    description="Match accounting transactions to spend-based CO2e emission factors",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """Database reachability plus the active matcher settings."""
    db_status = check_connection()
    matcher = MatcherConfig.from_settings(settings)

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "database": db_status,
        "matcher": matcher.model_dump(include={"enable_learning", "cache_vat", "base_currency"}),
    }


@app.get("/")
async def root():
    """API information and available endpoints."""
    return {
        "name": "Emission Factor Matcher API",
        "version": app.version,
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "matching": "/api/matching",
            "mappings": "/api/mappings"
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Application errors raised outside a route's own try/except."""
    logger.warning(
        "app_error",
        path=request.url.path,
        code=exc.code,
        error=exc.message
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything else becomes a 500 in the standard error shape."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes import matching_router, mappings_router

app.include_router(matching_router)
app.include_router(mappings_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
