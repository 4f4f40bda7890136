import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool, StaticPool

from .db_errors import WriteConflict, is_transient_error
from .exceptions import TransientStoreFailure

logger = logging.getLogger(__name__)

Base = declarative_base()

T = TypeVar("T")


def normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return database_url


def _engine_kwargs(database_url: str) -> dict:
    engine_kwargs = {"echo": False}

    if database_url.startswith("sqlite+aiosqlite://"):
        # In-memory SQLite must reuse the same connection to persist schema/data.
        if ":memory:" in database_url:
            engine_kwargs["poolclass"] = StaticPool
        else:
            # One connection per session so SQLite's file lock arbitrates writers.
            engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["pool_pre_ping"] = True
    return engine_kwargs


class Database:
    """Owns the engine and session factory for one process.

    Constructed once at startup (see :mod:`matchpoint.context`) and handed to
    whatever needs store access; nothing here is module-global.
    """

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise RuntimeError("DATABASE_URL environment variable is required")
        self.url = normalize_database_url(database_url)
        self.engine: AsyncEngine = create_async_engine(
            self.url, **_engine_kwargs(self.url)
        )
        self.session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def run_transaction(
        self,
        work: Callable[[AsyncSession], Awaitable[T]],
        *,
        attempts: int = 3,
        backoff: float = 0.05,
        label: str = "transaction",
    ) -> T:
        """Run ``work`` inside a fresh transaction, retrying transient failures.

        Every attempt gets a new session so preconditions are re-read from the
        store. Domain exceptions raised by ``work`` roll back and propagate
        untouched; transient database errors are retried up to ``attempts``
        times and then surface as :class:`TransientStoreFailure`.
        """

        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.session() as session:
                    async with session.begin():
                        return await work(session)
            except (DBAPIError, WriteConflict) as exc:
                if not is_transient_error(exc):
                    raise
                if attempt >= attempts:
                    logger.error(
                        "%s failed after %d attempts: %s", label, attempt, exc
                    )
                    raise TransientStoreFailure(label) from exc
                logger.warning(
                    "%s hit a transient store error (attempt %d/%d): %s",
                    label,
                    attempt,
                    attempts,
                    exc,
                )
                await asyncio.sleep(backoff * attempt)
