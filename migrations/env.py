"""
Alembic environment for the courier schema.

The database URL always comes from application settings (APP_DATABASE_URL);
the value in alembic.ini is only a placeholder. Online migrations run over
asyncpg, offline mode renders plain SQL for the PostgreSQL dialect.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from courier.core.config import get_settings
from courier.core.logging import get_logger
from courier.database.connection import convert_database_url_to_async

# Importing the models package registers every table with Base.metadata
from courier.database.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = get_logger(__name__)
target_metadata = Base.metadata

COMPARE_OPTIONS = {
    "target_metadata": target_metadata,
    "compare_type": True,
    "compare_server_default": True,
}


def _database_url() -> str:
    url = get_settings().database_url
    if not url:
        raise ValueError("APP_DATABASE_URL is required for migrations")
    return url


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout without connecting."""
    url = _database_url().replace("postgresql+asyncpg://", "postgresql://", 1)
    logger.info("Rendering migrations as SQL", dialect="postgresql")

    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        transaction_per_migration=True,
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Apply migrations over a short-lived asyncpg engine."""
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = convert_database_url_to_async(_database_url())

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    except Exception as e:
        logger.error(
            "Migration failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await connectable.dispose()

    logger.info("Migrations applied")


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
