"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bookhive.api.history_routes import router as history_router
from bookhive.api.library_routes import router as library_router
from bookhive.api.routes import router as books_router
from bookhive.api.user_routes import router as users_router
from bookhive.core.config import Settings, get_settings
from bookhive.core.context import AppContext, build_context
from bookhive.domain.errors import ConflictError, NotFoundError, ValidationError
from bookhive.infrastructure.database.connection import init_db

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[AppContext] = None,
) -> FastAPI:
    """Build the application.

    A pre-built ``context`` replaces the one normally wired from ``settings``
    at startup; it is still initialized and closed by the lifespan.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("Starting Bookhive application")
        ctx = context or build_context(settings)
        await init_db(ctx.engine)
        logger.info("Database initialized")
        app.state.context = ctx
        yield
        logger.info("Shutting down Bookhive application")
        await ctx.aclose()

    app = FastAPI(
        title="Bookhive",
        description="Book catalog with provider import, reviews and personal libraries",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)}
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(httpx.HTTPError)
    async def provider_error_handler(request: Request, exc: httpx.HTTPError):
        logger.error("Book provider request failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": "Book provider unavailable"},
        )

    app.include_router(users_router)
    app.include_router(books_router)
    app.include_router(library_router)
    app.include_router(history_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
