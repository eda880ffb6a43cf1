import logging

from .errors import ValidationFailure
from .ledger import MAX_BALANCE
from .models import Account
from .stores.base import UnitOfWorkFactory

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255


def clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationFailure("name must be a non-empty string")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationFailure(f"name must be at most {MAX_NAME_LENGTH} characters")
    return name


class AccountDirectory:
    """Plain CRUD over accounts. Balances are only ever changed by the ledger."""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    def create(self, name: str, balance: int = 0) -> Account:
        name = clean_name(name)
        if isinstance(balance, bool) or not isinstance(balance, int) or not 0 <= balance <= MAX_BALANCE:
            raise ValidationFailure(f"opening balance must be an integer between 0 and {MAX_BALANCE}")
        with self.uow_factory() as uow:
            account = uow.accounts.create(Account(name=name, balance=balance))
        logger.info("created account %s", account.account_id)
        return account

    def read(self, account_id: int) -> Account:
        with self.uow_factory() as uow:
            return uow.accounts.find_by_id(account_id)

    def my(self, account_id: int) -> Account:
        return self.read(account_id)

    def update(self, account_id: int, name: str) -> Account:
        name = clean_name(name)
        with self.uow_factory() as uow:
            account = uow.accounts.find_by_id(account_id, for_update=True)
            account.name = name
            uow.accounts.update(account)
        return account

    def delete(self, account_id: int) -> None:
        with self.uow_factory() as uow:
            uow.accounts.delete(account_id)
        logger.info("deleted account %s", account_id)

    def list(self) -> list[Account]:
        with self.uow_factory() as uow:
            return uow.accounts.list()
