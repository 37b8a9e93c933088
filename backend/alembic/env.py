"""
Alembic migration environment.

Migrations run through a synchronous driver: psycopg2 for PostgreSQL, the
stdlib sqlite3 driver when DATABASE_URL points at a SQLite file. SQLite gets
batch mode because it cannot ALTER most constraints in place.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from taxi_booking.core.config import get_settings
from taxi_booking.db.base import Base
from taxi_booking.models import User, Taxi, Route, Booking, Review  # noqa: F401 - register tables on Base.metadata

config = context.config
settings = get_settings()


def migration_url() -> str:
    if settings.is_sqlite:
        return settings.DATABASE_URL.replace("+aiosqlite", "")
    return settings.DATABASE_URL_SYNC


config.set_main_option("sqlalchemy.url", migration_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

CONFIGURE_OPTIONS = {
    "target_metadata": target_metadata,
    "compare_type": True,
    "render_as_batch": settings.is_sqlite,
}


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of touching a database."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **CONFIGURE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **CONFIGURE_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
