from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, List

IDENTITY_NONE = "none"
IDENTITY_PENDING = "pending"
IDENTITY_VERIFIED = "verified"
IDENTITY_REJECTED = "rejected"


@dataclass
class User:
    id: Optional[int]
    email: str
    password_hash: str
    is_admin: bool
    balance: Decimal
    created_at: str
    full_name: str = ""
    identity_status: str = IDENTITY_NONE  # none | pending | verified | rejected
    identity_documents: List[str] = field(default_factory=list)
