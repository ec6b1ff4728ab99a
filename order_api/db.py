import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from . import config
from .errors import OrderError

logger = logging.getLogger(__name__)

Base = declarative_base()

T = TypeVar("T")


def create_engine_for(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    # For SQLite, enable check_same_thread=False so the engine can be shared across tasks
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args
    engine = create_async_engine(url, echo=echo, future=True, **kwargs)

    # Ensure SQLite enforces foreign keys
    if url.startswith("sqlite"):
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


class Database:
    """Owns the async engine and hands out transaction-scoped sessions.

    ``transaction()`` is the single transaction boundary of the order core:
    every write performed inside the ``async with`` block commits together or
    not at all, and the session is released on every exit path.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_url(cls, url: Optional[str] = None, **kwargs) -> "Database":
        settings = config.get_settings()
        engine = create_engine_for(url or settings.database_url, echo=settings.db_echo, **kwargs)
        return cls(engine)

    async def create_all(self) -> None:
        # Import for side effect: registers the tables on Base.metadata
        from . import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Read-only session without an explicit commit."""
        async with self.session_factory() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except OrderError as e:
                await session.rollback()
                logger.warning("Transaction rolled back", extra={
                    "error_type": type(e).__name__,
                    "error": e.message,
                })
                raise
            except Exception as e:
                await session.rollback()
                logger.error("Transaction failed", extra={
                    "error_type": type(e).__name__,
                    "error": str(e),
                })
                raise

    async def run_in_transaction(self, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self.transaction() as session:
            return await fn(session)
