"""Database configuration for Barista Service"""

from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..models.base import BaristaServiceBase
from .setting import get_settings


class BaristaServiceDatabaseManager:
    """Database manager for Barista Service."""

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 20,
    ) -> None:
        engine_kwargs: Dict[str, Any] = {
            "echo": echo,
            "future": True,
        }

        if "sqlite" in database_url:
            # SQLite configuration for development and tests
            engine_kwargs["connect_args"] = {
                "timeout": 60,
                "check_same_thread": False,
            }
        else:
            engine_kwargs.update(
                {
                    "pool_size": pool_size,
                    "max_overflow": max_overflow,
                    "pool_timeout": 30,
                    "pool_recycle": 3600,
                    "pool_pre_ping": True,
                    "connect_args": {
                        "command_timeout": 30,
                        "server_settings": {"jit": "off"},
                    },
                }
            )

        self.database_url = database_url
        self.async_engine = create_async_engine(database_url, **engine_kwargs)
        self.async_session_maker = async_sessionmaker(
            bind=self.async_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @property
    def supports_row_locks(self) -> bool:
        return self.async_engine.dialect.name != "sqlite"

    async def create_tables(self) -> None:
        """Create all Barista Service database tables."""
        async with self.async_engine.begin() as conn:
            await conn.run_sync(BaristaServiceBase.metadata.create_all, checkfirst=True)

    async def health_check(self) -> bool:
        async with self.async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def close(self) -> None:
        """Close the Barista Service database engine and connections."""
        await self.async_engine.dispose()


_database_manager = None


def get_database_manager() -> BaristaServiceDatabaseManager:
    """Get the process-wide database manager, creating it on first use"""
    global _database_manager
    if _database_manager is None:
        settings = get_settings()
        _database_manager = BaristaServiceDatabaseManager(
            database_url=settings.BARISTA_DATABASE_URL,
            echo=settings.DEBUG,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
        )
    return _database_manager
