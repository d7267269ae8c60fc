from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.entities.user import User
from core.services.notification_dispatcher import NotificationDispatcher
from core.use_cases.rate_use_cases import (
    get_exchange_rate,
    list_exchange_rates,
    quote_conversion,
    set_exchange_rate,
)
from infrastructure.db.sqlite_catalog import SQLiteExchangeRateRepository
from infrastructure.web.dependencies import get_current_admin, get_rate_repo, get_notifier
from infrastructure.web.schemas import AmountIn, ExchangeRateResponse, rate_out

router = APIRouter(prefix="/api/exchange-rates", tags=["rates"])


class SetRateRequest(BaseModel):
    currency_pair: str
    rate: AmountIn
    commission_rate: AmountIn

class QuoteResponse(BaseModel):
    currency_pair: str
    source_amount: str
    rate: str
    commission_rate: str
    commission_amount: str
    target_amount: str

@router.get("", response_model=List[ExchangeRateResponse])
def rates(repo: SQLiteExchangeRateRepository = Depends(get_rate_repo)):
    return [rate_out(r) for r in list_exchange_rates(repo)]

@router.get("/{currency_pair}", response_model=ExchangeRateResponse)
def rate(currency_pair: str, repo: SQLiteExchangeRateRepository = Depends(get_rate_repo)):
    return rate_out(get_exchange_rate(repo, currency_pair))

@router.get("/{currency_pair}/quote", response_model=QuoteResponse)
def quote(currency_pair: str, amount: str, repo: SQLiteExchangeRateRepository = Depends(get_rate_repo)):
    q = quote_conversion(repo, currency_pair, amount)
    return QuoteResponse(
        currency_pair=q.currency_pair,
        source_amount=str(q.source_amount),
        rate=str(q.rate),
        commission_rate=str(q.commission_rate),
        commission_amount=str(q.commission_amount),
        target_amount=str(q.target_amount),
    )

@router.post("", response_model=ExchangeRateResponse, status_code=201)
def set_rate(
    payload: SetRateRequest,
    admin: User = Depends(get_current_admin),
    repo: SQLiteExchangeRateRepository = Depends(get_rate_repo),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    saved = set_exchange_rate(repo, notifier, admin, payload.currency_pair, payload.rate, payload.commission_rate)
    return rate_out(saved)
