from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass
class ExchangeRate:
    id: Optional[int]
    currency_pair: str       # "USD_TRY"
    rate: Decimal
    commission_rate: Decimal
    updated_by: Optional[int]
    updated_at: str
