from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from ...core.database import BaristaServiceDatabaseManager, get_database_manager
from ...core.events import get_channel_bindings, get_event_runtime, health_check_events
from ...core.setting import get_settings
from ...events.bindings import ChannelBindings
from ...repository.outbox_repository import OutboxRepository
from ...utils.service_health import BaristaServiceHealthChecker

router = APIRouter()

_health_checker: Optional[BaristaServiceHealthChecker] = None


def get_health_checker(
    database: BaristaServiceDatabaseManager = Depends(get_database_manager),
) -> BaristaServiceHealthChecker:
    global _health_checker
    if _health_checker is None:
        settings = get_settings()
        checker = BaristaServiceHealthChecker(settings.SERVICE_NAME, settings.APP_VERSION)

        async def database_check() -> Dict[str, Any]:
            try:
                await database.health_check()
            except SQLAlchemyError as e:
                return {"status": "unhealthy", "error": str(e), "component": "database"}
            return {"status": "healthy", "component": "database"}

        async def outbox_check() -> Dict[str, Any]:
            try:
                async with database.async_session_maker() as session:
                    pending = await OutboxRepository(session).count_pending()
            except SQLAlchemyError as e:
                return {"status": "unhealthy", "error": str(e), "component": "outbox"}
            return {"status": "healthy", "component": "outbox", "pending": pending}

        async def broker_check() -> Dict[str, Any]:
            connected = await health_check_events()
            return {
                "status": "healthy" if connected else "unhealthy",
                "component": "kafka",
            }

        checker.add_check("database", database_check)
        checker.add_check("outbox", outbox_check)
        checker.add_check("kafka", broker_check)
        _health_checker = checker
    return _health_checker


def require_channel_bindings() -> ChannelBindings:
    bindings = get_channel_bindings()
    if bindings is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Channel bindings are not initialized",
        )
    return bindings


@router.get("/health")
async def health_check(
    checker: BaristaServiceHealthChecker = Depends(get_health_checker),
) -> Dict[str, Any]:
    """Health check endpoint for the barista service."""
    report = await checker.run_checks()
    runtime = get_event_runtime()
    report["barista_id"] = runtime.identity.value if runtime else None
    return report


@router.get("/bindings")
async def channel_bindings(
    bindings: ChannelBindings = Depends(require_channel_bindings),
) -> Dict[str, Any]:
    """Logical channel to broker destination table."""
    return bindings.describe()
