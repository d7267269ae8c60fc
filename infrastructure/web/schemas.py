# DTO для ответов API, денежные суммы отдаём строками
from typing import Optional, List, Union

from pydantic import BaseModel

from core.entities.exchange_rate import ExchangeRate
from core.entities.ledger_entry import LedgerEntry
from core.entities.notification import Notification, Direct
from core.entities.payment_account import PaymentAccount
from core.entities.transaction import Transaction
from core.entities.user import User
from core.entities.withdrawal import WithdrawalRequest

AmountIn = Union[str, int, float]


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str
    is_admin: bool
    balance: str
    identity_status: str
    created_at: str

class TransactionResponse(BaseModel):
    id: int
    code: str
    user_id: int
    kind: str
    source_amount: str
    source_currency: str
    target_amount: str
    target_currency: str
    rate: str
    commission_rate: str
    commission_amount: str
    status: str
    payment_method: Optional[str] = None
    payment_details: Optional[str] = None
    payment_screenshot: Optional[str] = None
    payment_account_id: Optional[int] = None
    admin_notes: Optional[str] = None
    created_at: str
    updated_at: str

class WithdrawalResponse(BaseModel):
    id: int
    user_id: int
    transaction_id: Optional[int]
    amount: str
    method: str
    details: str
    status: str
    admin_notes: Optional[str] = None
    created_at: str
    updated_at: str

class WithdrawalWithTransaction(BaseModel):
    withdrawal: WithdrawalResponse
    transaction: TransactionResponse

class ExchangeRateResponse(BaseModel):
    id: int
    currency_pair: str
    rate: str
    commission_rate: str
    updated_by: Optional[int] = None
    updated_at: str

class PaymentAccountResponse(BaseModel):
    id: int
    account_type: str
    account_name: str
    account_number: str
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    swift_code: Optional[str] = None
    branch_code: Optional[str] = None
    additional_info: Optional[str] = None
    is_active: bool
    created_at: str
    updated_at: str

class NotificationResponse(BaseModel):
    id: int
    recipient: str            # direct | broadcast
    user_id: Optional[int] = None
    audience: Optional[str] = None
    title: str
    message: str
    type: str
    is_read: bool
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    created_at: str

class LedgerEntryResponse(BaseModel):
    id: int
    transaction_id: int
    amount: str
    balance_after: str
    created_at: str

class StatusUpdateRequest(BaseModel):
    status: str
    admin_notes: Optional[str] = None


def user_out(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        is_admin=user.is_admin,
        balance=str(user.balance),
        identity_status=user.identity_status,
        created_at=user.created_at,
    )

def transaction_out(tx: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=tx.id,
        code=tx.code,
        user_id=tx.user_id,
        kind=tx.kind.value,
        source_amount=str(tx.source_amount),
        source_currency=tx.source_currency,
        target_amount=str(tx.target_amount),
        target_currency=tx.target_currency,
        rate=str(tx.rate),
        commission_rate=str(tx.commission_rate),
        commission_amount=str(tx.commission_amount),
        status=tx.status.value,
        payment_method=tx.payment_method,
        payment_details=tx.payment_details,
        payment_screenshot=tx.payment_screenshot,
        payment_account_id=tx.payment_account_id,
        admin_notes=tx.admin_notes,
        created_at=tx.created_at,
        updated_at=tx.updated_at,
    )

def transactions_out(txs: List[Transaction]) -> List[TransactionResponse]:
    return [transaction_out(tx) for tx in txs]

def withdrawal_out(w: WithdrawalRequest) -> WithdrawalResponse:
    return WithdrawalResponse(
        id=w.id,
        user_id=w.user_id,
        transaction_id=w.transaction_id,
        amount=str(w.amount),
        method=w.method,
        details=w.details,
        status=w.status.value,
        admin_notes=w.admin_notes,
        created_at=w.created_at,
        updated_at=w.updated_at,
    )

def rate_out(rate: ExchangeRate) -> ExchangeRateResponse:
    return ExchangeRateResponse(
        id=rate.id,
        currency_pair=rate.currency_pair,
        rate=str(rate.rate),
        commission_rate=str(rate.commission_rate),
        updated_by=rate.updated_by,
        updated_at=rate.updated_at,
    )

def account_out(account: PaymentAccount) -> PaymentAccountResponse:
    return PaymentAccountResponse(
        id=account.id,
        account_type=account.account_type,
        account_name=account.account_name,
        account_number=account.account_number,
        bank_name=account.bank_name,
        iban=account.iban,
        swift_code=account.swift_code,
        branch_code=account.branch_code,
        additional_info=account.additional_info,
        is_active=account.is_active,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )

def notification_out(n: Notification) -> NotificationResponse:
    if isinstance(n.recipient, Direct):
        recipient, user_id, audience = "direct", n.recipient.user_id, None
    else:
        recipient, user_id, audience = "broadcast", None, n.recipient.audience
    return NotificationResponse(
        id=n.id,
        recipient=recipient,
        user_id=user_id,
        audience=audience,
        title=n.title,
        message=n.message,
        type=n.type,
        is_read=n.is_read,
        related_entity_type=n.related_entity_type,
        related_entity_id=n.related_entity_id,
        created_at=n.created_at,
    )

def ledger_entry_out(entry: LedgerEntry) -> LedgerEntryResponse:
    return LedgerEntryResponse(
        id=entry.id,
        transaction_id=entry.transaction_id,
        amount=str(entry.amount),
        balance_after=str(entry.balance_after),
        created_at=entry.created_at,
    )
