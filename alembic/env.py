# alembic/env.py
from __future__ import annotations

import os
import re
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection
from sqlalchemy.pool import NullPool

# Alembic base config
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# models are imported lazily through init_models()
from stockledger.db.base import Base, init_models  # noqa: E402

# ---------------------------------------------------------------------------
# URL: env first, then alembic.ini; async drivers mapped to their sync twins
# ---------------------------------------------------------------------------

_DRV_RE = re.compile(r"\+asyncpg\b|\+psycopg2\b|\+pg8000\b", re.I)


def normalize_sync_url(url: str) -> str:
    url = url.strip()
    if (url.startswith('"') and url.endswith('"')) or (url.startswith("'") and url.endswith("'")):
        url = url[1:-1].strip()

    if url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite+aiosqlite://", "sqlite://", 1)

    url = _DRV_RE.sub("+psycopg", url)
    url = re.sub(r"^postgres://", "postgresql+psycopg://", url, flags=re.I)
    if url.lower().startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def get_url() -> str:
    """
    Priority:
      1. STOCK_TEST_DATABASE_URL
      2. DATABASE_URL / STOCK_DATABASE_URL
      3. sqlalchemy.url in alembic.ini
    """
    url = (
        os.getenv("STOCK_TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or os.getenv("STOCK_DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        raise RuntimeError(
            "Alembic cannot determine the database URL: set DATABASE_URL "
            "(or STOCK_DATABASE_URL) or sqlalchemy.url in alembic.ini"
        )
    return normalize_sync_url(url)


# ---------------------------------------------------------------------------
# migration runners
# ---------------------------------------------------------------------------


def run_migrations_offline() -> None:
    """Offline: emit SQL only."""
    init_models()
    context.configure(
        url=get_url(),
        target_metadata=Base.metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=False,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Online: migrate a live database."""
    init_models()
    url = get_url()
    engine = create_engine(url, poolclass=NullPool, future=True)

    with engine.connect() as connection:  # type: Connection
        context.configure(
            connection=connection,
            target_metadata=Base.metadata,
            compare_type=True,
            compare_server_default=False,
            # SQLite cannot ALTER constraints in place
            render_as_batch=url.startswith("sqlite"),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
