import asyncio
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from app import models  # noqa: F401  registers every table on Base.metadata
from app.core.settings import settings
from app.db.base import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata

# DATABASE_URL (env or .env) wins over alembic.ini so the app and migrations share one source.
config.set_main_option("sqlalchemy.url", settings.database_url)


def _skip_empty_autogenerate(migration_context, revision, directives) -> None:
    if getattr(config.cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        logger.info("Models match the database; no revision written")


# Record timestamps default server-side, so defaults are compared along with types.
_COMPARE = {
    "target_metadata": target_metadata,
    "compare_type": True,
    "compare_server_default": True,
    "process_revision_directives": _skip_empty_autogenerate,
}


def run_migrations_offline() -> None:
    """Emit the origination schema as SQL without a database connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_COMPARE,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    context.configure(connection=connection, **_COMPARE)

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
