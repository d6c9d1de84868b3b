# create_tables.py
# Dev helper: create every table straight from the ORM metadata (no alembic).
from __future__ import annotations

import asyncio

from stockledger.core.config import get_settings
from stockledger.core.logging import setup_logging
from stockledger.db.base import Base, init_models
from stockledger.db.session import make_async_engine


async def main() -> None:
    settings = get_settings()
    init_models()
    engine = make_async_engine(settings.DATABASE_URL)
    print(f"creating tables on {engine.url.render_as_string(hide_password=True)} ...")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()
    print("done.")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
