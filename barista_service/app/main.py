import os
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from .api.v1.health import router as health_router
from .core.database import get_database_manager
from .core.events import close_events, init_events
from .core.setting import get_settings
from .utils.logging import setup_barista_logging as setup_logging

settings = get_settings()

environment = os.getenv("ENVIRONMENT", settings.ENVIRONMENT).lower()
enable_file_logging = environment in ["production", "staging"]

logger = setup_logging(
    "barista_service",
    log_level=settings.LOG_LEVEL,
    enable_file_logging=enable_file_logging,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    startup_start = time.time()
    database = get_database_manager()

    try:
        logger.info(
            "Starting barista service initialization",
            extra={
                "environment": environment,
                "debug_mode": settings.DEBUG,
                "service_version": settings.APP_VERSION,
            },
        )

        db_start = time.time()
        await database.create_tables()
        db_duration = int((time.time() - db_start) * 1000)
        logger.info(
            "Database initialization completed", extra={"duration_ms": db_duration}
        )

        event_start = time.time()
        runtime = await init_events(settings, database)
        app.state.event_runtime = runtime
        event_duration = int((time.time() - event_start) * 1000)

        logger.info(
            "Barista service started successfully",
            extra={
                "barista_id": runtime.identity.value,
                "total_startup_duration_ms": int((time.time() - startup_start) * 1000),
                "database_init_ms": db_duration,
                "event_init_ms": event_duration,
            },
        )

    except Exception as e:
        logger.error(
            "Failed to start barista service",
            exc_info=True,
            extra={
                "startup_duration_ms": int((time.time() - startup_start) * 1000),
                "error_type": type(e).__name__,
            },
        )
        await close_events()
        await database.close()
        raise

    yield

    shutdown_start = time.time()
    try:
        logger.info("Starting barista service shutdown")
        await close_events()
        await database.close()
        logger.info(
            "Barista service shutdown completed",
            extra={"shutdown_duration_ms": int((time.time() - shutdown_start) * 1000)},
        )

    except Exception as e:
        logger.error(
            "Error during barista service shutdown",
            exc_info=True,
            extra={
                "shutdown_duration_ms": int((time.time() - shutdown_start) * 1000),
                "error_type": type(e).__name__,
            },
        )
        raise


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
    )

    routers_info: list[dict[str, Any]] = []

    app.include_router(health_router, tags=["Health"])
    routers_info.append({"router": "health", "prefix": "", "tags": ["Health"]})

    logger.info(
        "API routes configured",
        extra={"total_routers": len(routers_info), "routers": routers_info},
    )

    return app


app = create_app()
