from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from core.entities.transaction import TransactionStatus


@dataclass
class WithdrawalRequest:
    id: Optional[int]
    user_id: int
    transaction_id: Optional[int]  # linked withdrawal-kind Transaction
    amount: Decimal
    method: str
    details: str
    status: TransactionStatus       # kept in lockstep with the linked Transaction
    created_at: str
    updated_at: str
    admin_notes: Optional[str] = None
