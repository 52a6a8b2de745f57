"""Open-or-reuse transaction scope."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from balance_engine.stores.base import BalanceStore, Transaction


@asynccontextmanager
async def use_transaction(
    store: BalanceStore, tx: Transaction | None = None
) -> AsyncGenerator[Transaction, None]:
    """Yield ``tx`` if given, otherwise a new transaction.

    Only a transaction opened here is committed here. It is rolled back on
    any exception, cancellation included, and the exception propagates.
    """
    if tx is not None:
        yield tx
        return

    tx = await store.begin()
    try:
        yield tx
    except BaseException:
        await tx.rollback()
        raise
    await tx.commit()
