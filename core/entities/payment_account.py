from dataclasses import dataclass
from typing import Optional

ACCOUNT_TYPES = ("paypal", "bank", "crypto")


@dataclass
class PaymentAccount:
    id: Optional[int]
    account_type: str       # paypal | bank | crypto
    account_name: str
    account_number: str     # e-mail, account number or wallet address
    is_active: bool
    created_at: str
    updated_at: str
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    swift_code: Optional[str] = None
    branch_code: Optional[str] = None
    additional_info: Optional[str] = None
