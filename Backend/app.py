"""
Biodiversity Discovery Game — FastAPI Application Entry Point.

Provides the game backend with:
  - PostGIS species lookups (point, radius, nearest)
  - Discovery migration and recording with first-write-wins upserts
  - Game sessions and clue unlock tracking
  - High score submission and listing
  - CORS support for the Next.js frontend
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from cache import ResponseCache
from config import Settings
from database import build_engine, build_session_factory
from discovery_routes import clues_router, players_router
from discovery_routes import router as discovery_router
from highscore_routes import router as highscore_router
from limiter import limiter
from models import APP_TABLES, Base
from session_routes import router as session_router
from species_routes import habitat_router
from species_routes import router as species_router

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s │ %(levelname)-7s │ %(name)s │ %(message)s",
    )


# ── Error rendering ──────────────────────────────────────────────
# Every error leaves the API as {"error": "<message>"}.

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


def describe_validation_error(exc: RequestValidationError) -> str:
    """First validation problem as a readable sentence."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    ctx_error = (first.get("ctx") or {}).get("error")
    if isinstance(ctx_error, Exception):
        return str(ctx_error)
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": describe_validation_error(exc)})


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ── App Lifecycle ────────────────────────────────────────────────

def _create_tables(engine) -> None:
    """Create the tables this service owns if they don't already exist."""
    Base.metadata.create_all(bind=engine, tables=APP_TABLES)
    logger.info("✓ Database tables ensured")


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Startup / shutdown lifecycle handler."""
    engine = application.state.engine
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("✓ Database connected successfully")
        _create_tables(engine)
    except SQLAlchemyError as e:
        logger.error("✗ Database connection failed: %s", e)

    yield  # ← app is running

    application.state.cache.close()
    engine.dispose()
    logger.info("Database connections closed")


# ── FastAPI App ──────────────────────────────────────────────────

def create_app(settings: Optional[Settings] = None, cache: Optional[ResponseCache] = None) -> FastAPI:
    """
    Build the application from ``settings`` (environment when omitted).

    Engine, session factory, cache and settings live on ``app.state``; routes
    reach them through dependencies rather than module globals.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    application = FastAPI(
        title="Biodiversity Discovery API",
        description="Species lookups, player discoveries and high scores for the discovery game",
        version="1.0.0",
        lifespan=lifespan,
    )

    engine = build_engine(settings)
    application.state.settings = settings
    application.state.engine = engine
    application.state.session_factory = build_session_factory(engine)
    application.state.cache = cache if cache is not None else ResponseCache.from_url(settings.redis_url)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(Exception, unhandled_exception_handler)

    # Register routes
    application.include_router(species_router)
    application.include_router(habitat_router)
    application.include_router(discovery_router)
    application.include_router(clues_router)
    application.include_router(session_router)
    application.include_router(players_router)
    application.include_router(highscore_router)

    @application.get("/health", tags=["Health"])
    def health_check():
        """Simple liveness probe."""
        return {"status": "ok", "service": "biodiversity-discovery"}

    return application


if __name__ == "__main__":
    import uvicorn
    # Run the app with auto-reload enabled
    uvicorn.run("app:create_app", factory=True, host="127.0.0.1", port=8000, reload=True)
