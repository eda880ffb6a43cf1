"""In-process stores used by tests and local experiments.

A single re-entrant lock is held for the whole unit of work, so units of
work are fully serialised. Rows are copied on the way in and out; callers
only change stored state through ``update``.
"""

import itertools
import threading
from typing import Optional

from ..errors import NotFound
from ..models import Account, Transaction
from .base import AccountStore, TransactionStore, UnitOfWork


class MemoryDatabase:
    def __init__(self):
        self.lock = threading.RLock()
        self.accounts: dict[int, Account] = {}
        self.transactions: list[Transaction] = []
        self.account_ids = itertools.count(1)
        self.transaction_ids = itertools.count(1)

    def snapshot(self):
        return dict(self.accounts), list(self.transactions)

    def restore(self, snapshot) -> None:
        self.accounts, self.transactions = snapshot


def _copy(row):
    return type(row)(**row.model_dump())


class MemoryAccountStore(AccountStore):
    def __init__(self, db: MemoryDatabase):
        self.db = db

    def create(self, account: Account) -> Account:
        stored = _copy(account)
        stored.account_id = next(self.db.account_ids)
        self.db.accounts[stored.account_id] = stored
        return _copy(stored)

    def find_by_id(self, account_id: int, for_update: bool = False) -> Account:
        # the unit of work already holds the database lock
        account = self.db.accounts.get(account_id)
        if account is None:
            raise NotFound(f"Account {account_id} not found")
        return _copy(account)

    def update(self, account: Account) -> None:
        if account.account_id not in self.db.accounts:
            raise NotFound(f"Account {account.account_id} not found")
        self.db.accounts[account.account_id] = _copy(account)

    def delete(self, account_id: int) -> None:
        if self.db.accounts.pop(account_id, None) is None:
            raise NotFound(f"Account {account_id} not found")

    def list(self) -> list[Account]:
        return [_copy(a) for _, a in sorted(self.db.accounts.items())]

    def count(self) -> int:
        return len(self.db.accounts)

    def sum_balance(self) -> int:
        return sum(a.balance for a in self.db.accounts.values())

    def avg_balance(self) -> Optional[float]:
        if not self.db.accounts:
            return None
        return self.sum_balance() / len(self.db.accounts)

    def find_max_balance(self) -> Optional[Account]:
        if not self.db.accounts:
            return None
        top = min(self.db.accounts.values(), key=lambda a: (-a.balance, a.account_id))
        return _copy(top)


class MemoryTransactionStore(TransactionStore):
    def __init__(self, db: MemoryDatabase):
        self.db = db

    def create(self, transaction: Transaction) -> Transaction:
        stored = _copy(transaction)
        stored.id = next(self.db.transaction_ids)
        self.db.transactions.append(stored)
        return _copy(stored)

    def find_by_account(self, account_id: int) -> list[Transaction]:
        rows = [t for t in self.db.transactions if t.account_id == account_id]
        rows.sort(key=lambda t: (t.transaction_date, t.id), reverse=True)
        return [_copy(t) for t in rows]


class MemoryUnitOfWork(UnitOfWork):
    def __init__(self, db: MemoryDatabase):
        self.db = db
        self._snapshot = None

    def __enter__(self) -> "MemoryUnitOfWork":
        self.db.lock.acquire()
        self._snapshot = self.db.snapshot()
        self.accounts = MemoryAccountStore(self.db)
        self.transactions = MemoryTransactionStore(self.db)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None:
                self.db.restore(self._snapshot)
        finally:
            self._snapshot = None
            self.db.lock.release()


def memory_unit_of_work(db: Optional[MemoryDatabase] = None):
    db = db or MemoryDatabase()

    def factory() -> MemoryUnitOfWork:
        return MemoryUnitOfWork(db)
    return factory
