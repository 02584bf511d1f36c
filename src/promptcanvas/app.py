"""promptcanvas FastAPI application."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from promptcanvas.api.routes import auth, generate, images
from promptcanvas.core import timezone  # noqa: F401
from promptcanvas.core.config import Settings, configure_logging
from promptcanvas.core.database import setup_db_session
from promptcanvas.services.image_generation.gateway import create_gateway
from promptcanvas.uow import create_uow_factory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire process-wide resources onto app.state.

    On startup: logging, the session factory, the UoW factory and the
    generation gateway. On shutdown: the engine's connection pool is disposed.
    """
    settings = Settings()  # type: ignore[call-arg]
    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)

    app.state.session_factory = session_factory
    app.state.uow_factory = create_uow_factory(session_factory)
    app.state.gateway = create_gateway(settings)

    # Credentials stay out of the log: only host/db part of the URL
    logger.info(
        "application.startup",
        db=settings.database_url.split("@")[-1],
        model=settings.replicate_model,
        env=settings.app_env,
    )

    yield

    logger.info("application.shutdown")
    await session_factory.kw["bind"].dispose()


def create_app() -> FastAPI:
    """Build the API: account, generation and gallery routers plus /health."""
    settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="promptcanvas API",
        description="Credit-based AI image generation with a personal gallery",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Credentials are required for the session cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    app.include_router(auth.router)
    app.include_router(generate.router)
    app.include_router(images.router)

    @app.get("/health")
    async def health(response: Response):
        """Liveness plus a round trip to the database.

        Returns 200 {"status": "healthy"}, or 503 {"status": "unhealthy", ...}
        when the database cannot be reached.
        """
        try:
            async with app.state.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.error("health.database_unreachable", error_type=type(e).__name__)
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {"status": "unhealthy", "error": {"type": type(e).__name__}}

        return {"status": "healthy"}

    return app


app = create_app()
