"""
rms_server/database.py
Registry database and per-event database engines

The registry is the always-open SQLite file holding users, sessions, roles,
config, the event directory and the audit log. Event databases are separate
files next to it, opened only long enough to apply their schema.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from rms_server.core.db_types import utcnow
from rms_server.orm import Base
from rms_server.orm.event_db import EventBase
from rms_server.services.registry import get_config_value, set_config_value

logger = logging.getLogger(__name__)

REGISTRY_CREATED_KEY = "registry.createdAt"


def sqlite_url(db_path: Union[str, Path]) -> str:
    return f"sqlite+aiosqlite:///{Path(db_path).as_posix()}"


def ensure_database_path(db_path: Path) -> None:
    """Create the directory that will hold the database file."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _enable_sqlite_pragmas(dbapi_connection, connection_record):
    # Cascading deletes on user_role/session/account depend on this
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def create_registry_engine(db_path: Path) -> AsyncEngine:
    engine = create_async_engine(
        sqlite_url(db_path),
        echo=False,
        connect_args={
            "timeout": 30.0,   # SQLite busy timeout in seconds
        }
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_pragmas)
    return engine


class RegistryStore:
    """
    Owner of the registry engine and session factory.

    init() is startup-fatal: any exception propagates so the process exits
    instead of serving without its registry.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path).expanduser().resolve()
        self.engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def events_dir(self) -> Path:
        """Event database files live next to the registry file."""
        return self.db_path.parent

    async def init(self) -> None:
        """Open the registry and create any missing tables."""
        logger.info(f"Initializing registry database at {self.db_path}")
        ensure_database_path(self.db_path)

        self.engine = create_registry_engine(self.db_path)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            async with self.session() as session:
                if await get_config_value(session, REGISTRY_CREATED_KEY) is None:
                    await set_config_value(session, REGISTRY_CREATED_KEY, utcnow().isoformat())
                    await session.commit()
        except Exception as e:
            logger.error(f"Registry initialization failed: {str(e)}")
            await self.close()
            raise

        logger.info("✓ Registry database ready")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("RegistryStore.init() has not been awaited")
        async with self._session_factory() as session:
            yield session

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
            logger.info("Registry database connection closed")


async def apply_event_schema(db_path: Path) -> None:
    """Create every per-event table inside an event database file, then close it."""
    engine = create_async_engine(sqlite_url(db_path), echo=False, poolclass=NullPool)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(EventBase.metadata.create_all)
    finally:
        await engine.dispose()
