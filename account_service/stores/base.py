"""Store interfaces consumed by the ledger and the account directory.

Implementations must be interchangeable: the ledger only sees a
``UnitOfWork`` that exposes ``accounts`` and ``transactions`` and that
commits on a clean exit and rolls back when an exception escapes.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..models import Account, Transaction


class AccountStore(ABC):

    @abstractmethod
    def create(self, account: Account) -> Account:
        """Persist a new account and return it with its identifier assigned."""

    @abstractmethod
    def find_by_id(self, account_id: int, for_update: bool = False) -> Account:
        """Return the account or raise ``NotFound``.

        ``for_update`` asks the store to lock the row until the unit of work
        ends, so a read-modify-write on the balance cannot interleave.
        """

    @abstractmethod
    def update(self, account: Account) -> None: ...

    @abstractmethod
    def delete(self, account_id: int) -> None:
        """Hard delete; raises ``NotFound`` when nothing was removed."""

    @abstractmethod
    def list(self) -> list[Account]: ...

    @abstractmethod
    def count(self) -> int: ...

    @abstractmethod
    def sum_balance(self) -> int: ...

    @abstractmethod
    def avg_balance(self) -> Optional[float]:
        """Mean balance, or None when there are no accounts."""

    @abstractmethod
    def find_max_balance(self) -> Optional[Account]:
        """Highest balance, lowest account_id on ties; None when empty."""


class TransactionStore(ABC):

    @abstractmethod
    def create(self, transaction: Transaction) -> Transaction: ...

    @abstractmethod
    def find_by_account(self, account_id: int) -> list[Transaction]:
        """Transactions originated by the account, newest first."""


class UnitOfWork(ABC):
    accounts: AccountStore
    transactions: TransactionStore

    @abstractmethod
    def __enter__(self) -> "UnitOfWork": ...

    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None: ...


UnitOfWorkFactory = Callable[[], UnitOfWork]
