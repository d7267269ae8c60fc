import logging
from typing import List, Dict, Any

from core.entities.payment_account import PaymentAccount, ACCOUNT_TYPES
from core.entities.user import User
from core.errors import ValidationError, NotFoundError, AuthorizationError
from core.repositories.catalog_repository import PaymentAccountRepository

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("account_type", "account_name", "account_number")
OPTIONAL_FIELDS = ("bank_name", "iban", "swift_code", "branch_code", "additional_info")


def _require_admin(admin: User) -> None:
    if not admin.is_admin:
        logger.warning("security: user %s tried to manage payment accounts", admin.id)
        raise AuthorizationError("Administrator access required")


def _clean(fields: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for name in REQUIRED_FIELDS:
        if name not in fields or fields[name] is None:
            if not partial:
                raise ValidationError(f"{name} is required", field=name)
            continue
        value = str(fields[name]).strip()
        if not value:
            raise ValidationError(f"{name} is required", field=name)
        cleaned[name] = value
    if "account_type" in cleaned:
        cleaned["account_type"] = cleaned["account_type"].lower()
        if cleaned["account_type"] not in ACCOUNT_TYPES:
            raise ValidationError(f"account_type must be one of: {', '.join(ACCOUNT_TYPES)}", field="account_type")
    for name in OPTIONAL_FIELDS:
        if name in fields:
            value = fields[name]
            if value is not None:
                value = str(value).strip() or None
            cleaned[name] = value
    if fields.get("is_active") is not None:
        cleaned["is_active"] = bool(fields["is_active"])
    elif not partial:
        cleaned["is_active"] = True
    return cleaned


def list_active_accounts(repo: PaymentAccountRepository) -> List[PaymentAccount]:
    return repo.list_active()


def list_all_accounts(repo: PaymentAccountRepository, admin: User) -> List[PaymentAccount]:
    _require_admin(admin)
    return repo.list_all()


def create_account(repo: PaymentAccountRepository, admin: User, fields: Dict[str, Any]) -> PaymentAccount:
    _require_admin(admin)
    account = repo.create(_clean(fields, partial=False))
    logger.info("Payment account %s (%s) created by admin %s", account.id, account.account_type, admin.id)
    return account


def update_account(repo: PaymentAccountRepository, admin: User, account_id: int,
                   fields: Dict[str, Any]) -> PaymentAccount:
    _require_admin(admin)
    account = repo.update(account_id, _clean(fields, partial=True))
    if account is None:
        raise NotFoundError("Payment account not found")
    return account


def delete_account(repo: PaymentAccountRepository, admin: User, account_id: int) -> None:
    _require_admin(admin)
    if not repo.delete(account_id):
        raise NotFoundError("Payment account not found")
    logger.info("Payment account %s deleted by admin %s", account_id, admin.id)
