from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List
from core.entities.ledger_entry import LedgerEntry


class AccountLedger(ABC):
    """Per-user scalar balance in local currency.

    ``credit`` and ``debit`` must run inside the caller's unit of work so the
    balance change commits or rolls back together with the status change that
    caused it. Each mutation records one ledger entry keyed by transaction.
    """

    @abstractmethod
    def get(self, user_id: int) -> Decimal:...

    @abstractmethod
    def credit(self, user_id: int, amount: Decimal, transaction_id: int) -> Decimal:...

    @abstractmethod
    def debit(self, user_id: int, amount: Decimal, transaction_id: int) -> Decimal:...

    @abstractmethod
    def list_entries(self, user_id: int, limit: int = 100, offset: int = 0) -> List[LedgerEntry]:...
