from .directory import AccountDirectory
from .ledger import Ledger, NoAccounts, Statistics

__all__ = ["AccountDirectory", "Ledger", "NoAccounts", "Statistics"]
