from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, List, Dict, Any
from core.entities.exchange_rate import ExchangeRate
from core.entities.payment_account import PaymentAccount


class ExchangeRateRepository(ABC):
    @abstractmethod
    def get(self, currency_pair: str) -> Optional[ExchangeRate]:...

    @abstractmethod
    def list_all(self) -> List[ExchangeRate]:...

    @abstractmethod
    def upsert(self, currency_pair: str, rate: Decimal, commission_rate: Decimal,
               updated_by: Optional[int]) -> ExchangeRate:...


class PaymentAccountRepository(ABC):
    @abstractmethod
    def create(self, fields: Dict[str, Any]) -> PaymentAccount:...

    @abstractmethod
    def get(self, account_id: int) -> Optional[PaymentAccount]:...

    @abstractmethod
    def list_all(self) -> List[PaymentAccount]:...

    @abstractmethod
    def list_active(self) -> List[PaymentAccount]:...

    @abstractmethod
    def update(self, account_id: int, fields: Dict[str, Any]) -> Optional[PaymentAccount]:...

    @abstractmethod
    def delete(self, account_id: int) -> bool:...
