from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, FrozenSet


class TransactionKind(str, Enum):
    CONVERSION = "conversion"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[TransactionStatus] = frozenset(
    {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED}
)
ACTIVE_STATUSES: FrozenSet[TransactionStatus] = frozenset(
    {TransactionStatus.PENDING, TransactionStatus.PROCESSING}
)

_FORWARD_TARGETS = frozenset(
    {TransactionStatus.PROCESSING, TransactionStatus.COMPLETED, TransactionStatus.CANCELLED}
)
TRANSITIONS: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = {
    TransactionStatus.PENDING: _FORWARD_TARGETS,
    TransactionStatus.PROCESSING: _FORWARD_TARGETS,
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
}


def can_transition(
    current: TransactionStatus,
    new: TransactionStatus,
    allow_processing_to_pending: bool = False,
) -> bool:
    if new in TRANSITIONS[current]:
        return True
    return (
        allow_processing_to_pending
        and current is TransactionStatus.PROCESSING
        and new is TransactionStatus.PENDING
    )


@dataclass
class Transaction:
    id: Optional[int]
    code: str                     # human-facing, e.g. TRX-7K2M9QZ4XW1B
    user_id: int
    kind: TransactionKind
    source_amount: Decimal
    source_currency: str
    target_amount: Decimal
    target_currency: str
    rate: Decimal                 # snapshot at creation
    commission_rate: Decimal      # snapshot at creation, fraction 0..1
    commission_amount: Decimal
    status: TransactionStatus
    created_at: str
    updated_at: str
    payment_method: Optional[str] = None
    payment_details: Optional[str] = None
    payment_screenshot: Optional[str] = None
    payment_account_id: Optional[int] = None
    admin_notes: Optional[str] = None
