import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlmodel import Session, select

from ..errors import LedgerError, NotFound, StoreConflict, StoreFailure
from ..models import Account, Transaction
from .base import AccountStore, TransactionStore, UnitOfWork

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_PGCODES = {"40001", "40P01", "55P03"}


def is_conflict(exc: SQLAlchemyError) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in RETRYABLE_PGCODES:
        return True
    return isinstance(exc, OperationalError) and "locked" in str(exc.orig).lower()


class SqlAccountStore(AccountStore):
    def __init__(self, session: Session):
        self.session = session

    def create(self, account: Account) -> Account:
        self.session.add(account)
        self.session.flush()
        self.session.refresh(account)
        return account

    def find_by_id(self, account_id: int, for_update: bool = False) -> Account:
        stmt = select(Account).where(Account.account_id == account_id)
        if for_update:
            stmt = stmt.with_for_update()
        account = self.session.exec(stmt).first()
        if account is None:
            raise NotFound(f"Account {account_id} not found")
        return account

    def update(self, account: Account) -> None:
        self.session.add(account)
        self.session.flush()

    def delete(self, account_id: int) -> None:
        account = self.session.get(Account, account_id)
        if account is None:
            raise NotFound(f"Account {account_id} not found")
        self.session.delete(account)
        self.session.flush()

    def list(self) -> list[Account]:
        return list(self.session.exec(select(Account).order_by(Account.account_id)).all())

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(Account)).one()

    def sum_balance(self) -> int:
        return self.session.exec(select(func.coalesce(func.sum(Account.balance), 0))).one()

    def avg_balance(self) -> Optional[float]:
        avg = self.session.exec(select(func.avg(Account.balance))).one()
        return None if avg is None else float(avg)

    def find_max_balance(self) -> Optional[Account]:
        stmt = select(Account).order_by(Account.balance.desc(), Account.account_id.asc()).limit(1)
        return self.session.exec(stmt).first()


class SqlTransactionStore(TransactionStore):
    def __init__(self, session: Session):
        self.session = session

    def create(self, transaction: Transaction) -> Transaction:
        self.session.add(transaction)
        self.session.flush()
        self.session.refresh(transaction)
        return transaction

    def find_by_account(self, account_id: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.account_id == account_id)
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        )
        return list(self.session.exec(stmt).all())


class SqlUnitOfWork(UnitOfWork):
    """One database transaction; commits on clean exit, rolls back otherwise.

    SQLAlchemy errors never leave this class: retryable ones become
    ``StoreConflict``, the rest ``StoreFailure``.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session: Optional[Session] = None

    def __enter__(self) -> "SqlUnitOfWork":
        self.session = Session(self.engine, expire_on_commit=False)
        self.accounts = SqlAccountStore(self.session)
        self.transactions = SqlTransactionStore(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                self.session.commit()
            else:
                self.session.rollback()
        except SQLAlchemyError as err:
            self.session.rollback()
            raise self._translate(err) from err
        finally:
            self.session.close()

        if exc is not None and isinstance(exc, SQLAlchemyError):
            raise self._translate(exc) from exc

    def _translate(self, err: SQLAlchemyError) -> LedgerError:
        if is_conflict(err):
            return StoreConflict()
        logger.error("store operation failed: %s", err, exc_info=err)
        return StoreFailure()


def sql_unit_of_work(engine: Engine):
    def factory() -> SqlUnitOfWork:
        return SqlUnitOfWork(engine)
    return factory
