import asyncio
import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from core.entities.user import User
from core.services.proof_storage import ProofStorage
from core.use_cases.payment_account_use_cases import list_active_accounts
from core.use_cases.transaction_use_cases import TransactionEngine
from infrastructure.db.sqlite_catalog import SQLitePaymentAccountRepository
from infrastructure.web.dependencies import (
    get_current_user,
    get_engine,
    get_proof_storage,
    get_account_repo,
)
from infrastructure.web.schemas import (
    AmountIn,
    TransactionResponse,
    WithdrawalResponse,
    WithdrawalWithTransaction,
    PaymentAccountResponse,
    transaction_out,
    transactions_out,
    withdrawal_out,
    account_out,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["transactions"])


class CreateTransactionRequest(BaseModel):
    kind: str = "conversion"
    source_amount: AmountIn
    source_currency: str
    target_amount: AmountIn
    target_currency: str
    rate: AmountIn
    commission_rate: AmountIn
    commission_amount: AmountIn
    payment_method: Optional[str] = None
    payment_details: Optional[str] = None
    payment_account_id: Optional[int] = None

class WithdrawalRequestIn(BaseModel):
    amount: AmountIn
    method: str
    details: str

@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    payload: CreateTransactionRequest,
    current_user: User = Depends(get_current_user),
    engine: TransactionEngine = Depends(get_engine),
):
    tx = engine.create_transaction(
        current_user,
        kind=payload.kind,
        source_amount=payload.source_amount,
        source_currency=payload.source_currency,
        target_amount=payload.target_amount,
        target_currency=payload.target_currency,
        rate=payload.rate,
        commission_rate=payload.commission_rate,
        commission_amount=payload.commission_amount,
        payment_method=payload.payment_method,
        payment_details=payload.payment_details,
        payment_account_id=payload.payment_account_id,
    )
    return transaction_out(tx)

@router.get("/transactions", response_model=List[TransactionResponse])
def list_my_transactions(
    limit: int = 50,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    engine: TransactionEngine = Depends(get_engine),
):
    limit = max(1, min(100, int(limit)))
    offset = max(0, int(offset))
    return transactions_out(engine.list_user_transactions(current_user, limit=limit, offset=offset))

@router.get("/transactions/code/{code}", response_model=TransactionResponse)
def get_transaction_by_code(
    code: str,
    current_user: User = Depends(get_current_user),
    engine: TransactionEngine = Depends(get_engine),
):
    return transaction_out(engine.get_transaction_by_code(code, current_user))

@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    engine: TransactionEngine = Depends(get_engine),
):
    return transaction_out(engine.get_transaction(transaction_id, current_user))

@router.post("/transactions/{transaction_id}/payment-proof", response_model=TransactionResponse)
async def upload_payment_proof(
    transaction_id: int,
    screenshot: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    engine: TransactionEngine = Depends(get_engine),
    storage: ProofStorage = Depends(get_proof_storage),
):
    reference = None
    try:
        if screenshot is not None and screenshot.filename:
            content = await screenshot.read()
            stored = await asyncio.to_thread(storage.save, screenshot.filename, content)
            reference = stored.reference
        # BEGIN IMMEDIATE ждёт блокировку вне event loop
        tx = await asyncio.to_thread(engine.attach_payment_proof, transaction_id, current_user.id, reference)
    except Exception:
        # файл без транзакции не нужен
        if reference:
            storage.discard(reference)
        raise
    return transaction_out(tx)

@router.post("/withdrawals", response_model=WithdrawalWithTransaction, status_code=201)
def request_withdrawal(
    payload: WithdrawalRequestIn,
    current_user: User = Depends(get_current_user),
    engine: TransactionEngine = Depends(get_engine),
):
    withdrawal, tx = engine.request_withdrawal(current_user, payload.amount, payload.method, payload.details)
    return WithdrawalWithTransaction(withdrawal=withdrawal_out(withdrawal), transaction=transaction_out(tx))

@router.get("/withdrawals", response_model=List[WithdrawalResponse])
def list_my_withdrawals(
    current_user: User = Depends(get_current_user),
    engine: TransactionEngine = Depends(get_engine),
):
    return [withdrawal_out(w) for w in engine.list_user_withdrawals(current_user)]

@router.get("/payment-accounts/active", response_model=List[PaymentAccountResponse])
def active_payment_accounts(
    current_user: User = Depends(get_current_user),
    repo: SQLitePaymentAccountRepository = Depends(get_account_repo),
):
    return [account_out(a) for a in list_active_accounts(repo)]
