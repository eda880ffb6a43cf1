"""Balance-changing operations and the read models derived from balances.

Every operation opens its own unit of work and reads from the store at
start; nothing is cached between calls. Transfers lock both rows in
ascending id order, so two transfers over the same pair of accounts cannot
deadlock each other and never check funds against a stale balance.
"""

import logging
import os
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from .errors import InsufficientFunds, InvalidAmount, NotFound, SameAccount, StoreConflict
from .models import Transaction
from .stores.base import UnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)

TRANSFER_MAX_ATTEMPTS = int(os.getenv("TRANSFER_MAX_ATTEMPTS", "5"))
TRANSFER_RETRY_BACKOFF = float(os.getenv("TRANSFER_RETRY_BACKOFF", "0.05"))

# balances are stored as signed 64-bit integers
MAX_BALANCE = 2**63 - 1


@dataclass
class TopUserBalance:
    account_id: int
    name: str
    balance: int


@dataclass
class Statistics:
    creator: str
    current_date: str
    total_user: int
    total_balance: int
    average_balance: float
    top_user_balance: TopUserBalance

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NoAccounts:
    kind: str = "no_accounts"
    message: str = "No users found"

    def to_dict(self) -> dict:
        return asdict(self)


def check_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")
    if amount > MAX_BALANCE:
        raise InvalidAmount(f"Amount must be at most {MAX_BALANCE}")
    return amount


def check_credit(balance: int, amount: int, account_id: int) -> None:
    if balance > MAX_BALANCE - amount:
        raise InvalidAmount(f"Crediting {amount} would push account {account_id} past {MAX_BALANCE}")


class Ledger:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Optional[Callable[[], datetime]] = None,
        max_attempts: int = TRANSFER_MAX_ATTEMPTS,
        retry_backoff: float = TRANSFER_RETRY_BACKOFF,
    ):
        self.uow_factory = uow_factory
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff = retry_backoff

    def _atomic(self, work: Callable[[UnitOfWork], object], operation: str):
        """Run ``work`` in a fresh unit of work, retrying store conflicts."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.uow_factory() as uow:
                    return work(uow)
            except StoreConflict:
                if attempt == self.max_attempts:
                    logger.error("%s gave up after %d attempts", operation, attempt)
                    raise
                logger.warning("%s hit a store conflict (attempt %d/%d), retrying",
                               operation, attempt, self.max_attempts)
                time.sleep(self.retry_backoff * attempt)

    def top_up(self, account_id: int, amount: int) -> int:
        check_amount(amount)

        def work(uow: UnitOfWork) -> int:
            account = uow.accounts.find_by_id(account_id, for_update=True)
            check_credit(account.balance, amount, account_id)
            account.balance += amount
            uow.accounts.update(account)
            return account.balance

        balance = self._atomic(work, "top up")
        logger.info("top up account=%s amount=%s balance=%s", account_id, amount, balance)
        return balance

    def balance(self, account_id: int) -> int:
        with self.uow_factory() as uow:
            return uow.accounts.find_by_id(account_id).balance

    def transfer(self, from_account_id: int, to_account_id: int, amount: int) -> Transaction:
        check_amount(amount)
        if from_account_id == to_account_id:
            raise SameAccount()

        def work(uow: UnitOfWork) -> Transaction:
            locked = {}
            for account_id in sorted((from_account_id, to_account_id)):
                try:
                    locked[account_id] = uow.accounts.find_by_id(account_id, for_update=True)
                except NotFound:
                    role = "Sender" if account_id == from_account_id else "Target"
                    raise NotFound(f"{role} account not found") from None
            sender, receiver = locked[from_account_id], locked[to_account_id]

            if sender.balance < amount:
                raise InsufficientFunds(
                    f"Insufficient balance: account {from_account_id} has {sender.balance}, needs {amount}"
                )

            check_credit(receiver.balance, amount, to_account_id)
            sender.balance -= amount
            receiver.balance += amount
            uow.accounts.update(sender)
            uow.accounts.update(receiver)
            return uow.transactions.create(Transaction(
                account_id=from_account_id,
                to_account_id=to_account_id,
                amount=amount,
                transaction_date=self.clock(),
            ))

        try:
            transaction = self._atomic(work, "transfer")
        except (NotFound, InsufficientFunds, InvalidAmount) as err:
            logger.info("transfer %s -> %s rejected: %s", from_account_id, to_account_id, err.message)
            raise
        logger.info("transfer %s -> %s amount=%s committed as transaction %s",
                    from_account_id, to_account_id, amount, transaction.id)
        return transaction

    def mutation(self, account_id: int) -> list[Transaction]:
        with self.uow_factory() as uow:
            return uow.transactions.find_by_account(account_id)

    def statistics(self, requesting_account_id: int) -> Union[Statistics, NoAccounts]:
        with self.uow_factory() as uow:
            top = uow.accounts.find_max_balance()
            if top is None:
                return NoAccounts()
            creator = uow.accounts.find_by_id(requesting_account_id)
            return Statistics(
                creator=creator.name,
                current_date=self.clock().strftime("%Y-%m-%d"),
                total_user=uow.accounts.count(),
                total_balance=uow.accounts.sum_balance(),
                average_balance=uow.accounts.avg_balance() or 0.0,
                top_user_balance=TopUserBalance(
                    account_id=top.account_id,
                    name=top.name,
                    balance=top.balance,
                ),
            )
