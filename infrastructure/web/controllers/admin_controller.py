from typing import Optional, List

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from core.entities.user import User
from core.use_cases import payment_account_use_cases as accounts
from core.use_cases.identity_use_cases import review_identity
from core.use_cases.notification_use_cases import send_admin_notification
from core.use_cases.transaction_use_cases import TransactionEngine
from core.use_cases.user_use_cases import list_users, set_user_role
from core.services.notification_dispatcher import NotificationDispatcher
from infrastructure.db.sqlite import SQLiteUserRepository
from infrastructure.db.sqlite_catalog import SQLitePaymentAccountRepository
from infrastructure.db.sqlite_notifications import SQLiteNotificationRepository
from infrastructure.web.dependencies import (
    get_current_admin,
    get_engine,
    get_user_repo,
    get_account_repo,
    get_notification_repo,
    get_notifier,
)
from infrastructure.web.schemas import (
    StatusUpdateRequest,
    TransactionResponse,
    WithdrawalResponse,
    WithdrawalWithTransaction,
    PaymentAccountResponse,
    NotificationResponse,
    UserResponse,
    transaction_out,
    transactions_out,
    withdrawal_out,
    account_out,
    notification_out,
    user_out,
)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class PaymentAccountCreate(BaseModel):
    account_type: str
    account_name: str
    account_number: str
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    swift_code: Optional[str] = None
    branch_code: Optional[str] = None
    additional_info: Optional[str] = None
    is_active: bool = True

class PaymentAccountUpdate(BaseModel):
    account_type: Optional[str] = None
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    swift_code: Optional[str] = None
    branch_code: Optional[str] = None
    additional_info: Optional[str] = None
    is_active: Optional[bool] = None

class RoleUpdateRequest(BaseModel):
    is_admin: bool

class IdentityReviewRequest(BaseModel):
    verified: bool
    notes: Optional[str] = None

class AdminNotificationRequest(BaseModel):
    title: str
    message: str
    type: str = "info"
    user_id: Optional[int] = None


# транзакции

@router.get("/transactions", response_model=List[TransactionResponse])
def all_transactions(
    limit: int = 100,
    offset: int = 0,
    admin: User = Depends(get_current_admin),
    engine: TransactionEngine = Depends(get_engine),
):
    limit = max(1, min(500, int(limit)))
    offset = max(0, int(offset))
    return transactions_out(engine.list_all_transactions(admin, limit=limit, offset=offset))

@router.get("/pending-transactions", response_model=List[TransactionResponse])
def pending_transactions(
    admin: User = Depends(get_current_admin),
    engine: TransactionEngine = Depends(get_engine),
):
    return transactions_out(engine.list_pending_transactions(admin))

@router.patch("/transactions/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    payload: StatusUpdateRequest,
    admin: User = Depends(get_current_admin),
    engine: TransactionEngine = Depends(get_engine),
):
    tx = engine.admin_update_status(transaction_id, payload.status, payload.admin_notes, admin)
    return transaction_out(tx)

@router.get("/withdrawals", response_model=List[WithdrawalResponse])
def pending_withdrawals(
    admin: User = Depends(get_current_admin),
    engine: TransactionEngine = Depends(get_engine),
):
    return [withdrawal_out(w) for w in engine.list_pending_withdrawals(admin)]

@router.patch("/withdrawals/{withdrawal_id}", response_model=WithdrawalWithTransaction)
def update_withdrawal(
    withdrawal_id: int,
    payload: StatusUpdateRequest,
    admin: User = Depends(get_current_admin),
    engine: TransactionEngine = Depends(get_engine),
):
    withdrawal, tx = engine.admin_update_withdrawal(withdrawal_id, payload.status, payload.admin_notes, admin)
    return WithdrawalWithTransaction(withdrawal=withdrawal_out(withdrawal), transaction=transaction_out(tx))


# пользователи и KYC

@router.get("/users", response_model=List[UserResponse])
def users(
    admin: User = Depends(get_current_admin),
    repo: SQLiteUserRepository = Depends(get_user_repo),
):
    return [user_out(u) for u in list_users(repo, admin)]

@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user_role(
    user_id: int,
    payload: RoleUpdateRequest,
    admin: User = Depends(get_current_admin),
    repo: SQLiteUserRepository = Depends(get_user_repo),
):
    return user_out(set_user_role(repo, admin, user_id, payload.is_admin))

@router.patch("/users/{user_id}/verify-identity", response_model=UserResponse)
def verify_identity(
    user_id: int,
    payload: IdentityReviewRequest,
    admin: User = Depends(get_current_admin),
    repo: SQLiteUserRepository = Depends(get_user_repo),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    return user_out(review_identity(repo, notifier, admin, user_id, payload.verified, payload.notes))

@router.post("/notifications", response_model=NotificationResponse, status_code=201)
def send_notification(
    payload: AdminNotificationRequest,
    admin: User = Depends(get_current_admin),
    repo: SQLiteNotificationRepository = Depends(get_notification_repo),
    users_repo: SQLiteUserRepository = Depends(get_user_repo),
):
    notification = send_admin_notification(
        repo, users_repo, admin,
        title=payload.title, message=payload.message, type=payload.type, user_id=payload.user_id,
    )
    return notification_out(notification)


# платёжные реквизиты

@router.get("/payment-accounts", response_model=List[PaymentAccountResponse])
def all_payment_accounts(
    admin: User = Depends(get_current_admin),
    repo: SQLitePaymentAccountRepository = Depends(get_account_repo),
):
    return [account_out(a) for a in accounts.list_all_accounts(repo, admin)]

@router.post("/payment-accounts", response_model=PaymentAccountResponse, status_code=201)
def create_payment_account(
    payload: PaymentAccountCreate,
    admin: User = Depends(get_current_admin),
    repo: SQLitePaymentAccountRepository = Depends(get_account_repo),
):
    return account_out(accounts.create_account(repo, admin, payload.model_dump()))

@router.patch("/payment-accounts/{account_id}", response_model=PaymentAccountResponse)
def update_payment_account(
    account_id: int,
    payload: PaymentAccountUpdate,
    admin: User = Depends(get_current_admin),
    repo: SQLitePaymentAccountRepository = Depends(get_account_repo),
):
    fields = payload.model_dump(exclude_unset=True)
    return account_out(accounts.update_account(repo, admin, account_id, fields))

@router.delete("/payment-accounts/{account_id}", status_code=204)
def delete_payment_account(
    account_id: int,
    admin: User = Depends(get_current_admin),
    repo: SQLitePaymentAccountRepository = Depends(get_account_repo),
):
    accounts.delete_account(repo, admin, account_id)
    return Response(status_code=204)
