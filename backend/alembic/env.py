import asyncio
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from alembic import context

from matchpoint import models  # noqa: F401,E402  registers every table on Base.metadata
from matchpoint.db import Base, Database, normalize_database_url  # noqa: E402

config = context.config

if config.config_file_name:
    from logging.config import fileConfig

    try:
        fileConfig(config.config_file_name, disable_existing_loggers=False)
    except KeyError:
        pass  # ini without logging sections

target_metadata = Base.metadata


def _database_url() -> str:
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("DATABASE_URL environment variable is required")
    return normalize_database_url(url)


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online(url: str) -> None:
    # Same engine setup the service uses, so SQLite and Postgres pools match.
    database = Database(url)
    try:
        async with database.engine.connect() as connection:
            await connection.run_sync(lambda sync_conn: _configure(connection=sync_conn))
    finally:
        await database.dispose()


if context.is_offline_mode():
    _configure(url=_database_url(), literal_binds=True)
else:
    asyncio.run(_migrate_online(_database_url()))
