"""Store variants implementing the BalanceStore capability set."""

from balance_engine.stores.base import BalanceStore, ConflictAlreadyFinalized, Transaction
from balance_engine.stores.memory import InMemoryStore
from balance_engine.stores.sql import SqlAlchemyStore

__all__ = [
    "BalanceStore",
    "ConflictAlreadyFinalized",
    "InMemoryStore",
    "SqlAlchemyStore",
    "Transaction",
]
