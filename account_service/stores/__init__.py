from .base import AccountStore, TransactionStore, UnitOfWork, UnitOfWorkFactory
from .memory import MemoryDatabase, memory_unit_of_work
from .sql import sql_unit_of_work

__all__ = [
    "AccountStore",
    "TransactionStore",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "MemoryDatabase",
    "memory_unit_of_work",
    "sql_unit_of_work",
]
