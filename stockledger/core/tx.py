# stockledger/core/tx.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    One workflow step = one commit.

    - caller already in a transaction: savepoint, then commit the outer one
    - otherwise: begin/commit
    - on error only the step is rolled back, then the error propagates
    """
    tx_ctx = session.begin_nested() if session.in_transaction() else session.begin()
    async with tx_ctx:
        yield session
    if session.in_transaction():
        await session.commit()
