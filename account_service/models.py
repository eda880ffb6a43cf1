from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(SQLModel, table=True):
    __tablename__ = "accounts"

    account_id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    balance: int = 0


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(index=True)
    to_account_id: int
    amount: int
    transaction_date: datetime = Field(default_factory=utcnow, index=True)
