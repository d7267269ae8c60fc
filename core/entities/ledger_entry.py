from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass
class LedgerEntry:
    id: Optional[int]
    user_id: int
    transaction_id: int
    amount: Decimal          # credit: >0, debit: <0
    balance_after: Decimal
    created_at: str
