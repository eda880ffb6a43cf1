"""Error taxonomy shared by the ledger, the directory and the stores.

Every error carries a machine-readable ``kind`` and a human-readable
``message``; the HTTP layer renders both and picks the status code.
"""

from typing import Optional


class LedgerError(Exception):
    kind = "ledger_error"
    default_message = "Ledger operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFound(LedgerError):
    kind = "not_found"
    default_message = "Not found"


class InvalidAmount(LedgerError):
    kind = "invalid_amount"
    default_message = "Amount must be a positive integer"


class SameAccount(LedgerError):
    kind = "same_account"
    default_message = "Cannot transfer to the same account"


class InsufficientFunds(LedgerError):
    kind = "insufficient_funds"
    default_message = "Insufficient balance"


class ValidationFailure(LedgerError):
    kind = "validation_failure"
    default_message = "Invalid payload"


class StoreFailure(LedgerError):
    kind = "store_failure"
    default_message = "Store operation failed"


class StoreConflict(StoreFailure):
    # lock timeout, serialization failure or deadlock; safe to retry
    kind = "store_conflict"
    default_message = "Store is busy, try again"
