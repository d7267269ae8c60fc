import logging
from decimal import Decimal
from typing import Optional, List
from passlib.context import CryptContext
from core.entities.ledger_entry import LedgerEntry
from core.entities.user import User
from core.errors import ValidationError, AuthorizationError, ConflictError
from core.repositories.ledger_repository import AccountLedger
from core.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)

def register_user(repo: UserRepository, email: str, password: str, is_admin: bool = False,
                  full_name: str = "") -> User:
    email = email.strip().lower()
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password")
    existing = repo.get_by_email(email)
    if existing is not None:
        raise ValidationError("User with this email already exists", field="email")
    password_hash = get_password_hash(password)
    user = repo.create_user(email=email, password_hash=password_hash, is_admin=is_admin,
                            full_name=full_name.strip())
    logger.info("Registered user %s (admin=%s)", user.id, is_admin)
    return user

def authenticate_user(repo: UserRepository, email: str, password: str) -> Optional[User]:
    email = email.strip().lower()
    user = repo.get_by_email(email)
    if not user:
        logger.warning("security: login failed for unknown account")
        return None
    if not verify_password(password, user.password_hash):
        logger.warning("security: login failed for user %s", user.id)
        return None
    return user

def ensure_admin_account(repo: UserRepository, email: str, password: str) -> Optional[User]:
    """Create the bootstrap administrator once, if configured."""
    if not email or not password:
        return None
    existing = repo.get_by_email(email.strip().lower())
    if existing is not None:
        return existing
    return register_user(repo, email=email, password=password, is_admin=True, full_name="Administrator")

def get_balance(ledger: AccountLedger, user: User) -> Decimal:
    return ledger.get(user.id)

def get_balance_history(ledger: AccountLedger, user: User, limit: int = 50, offset: int = 0) -> List[LedgerEntry]:
    return ledger.list_entries(user.id, limit=limit, offset=offset)

def list_users(repo: UserRepository, admin: User) -> List[User]:
    if not admin.is_admin:
        logger.warning("security: user %s tried to list users", admin.id)
        raise AuthorizationError("Administrator access required")
    return repo.list_users()

def set_user_role(repo: UserRepository, admin: User, user_id: int, is_admin: bool) -> User:
    if not admin.is_admin:
        logger.warning("security: user %s tried to change role of user %s", admin.id, user_id)
        raise AuthorizationError("Administrator access required")
    if admin.id == user_id and not is_admin:
        raise ConflictError("Administrators cannot revoke their own access")
    user = repo.set_admin(user_id, is_admin)
    logger.info("User %s admin=%s set by admin %s", user_id, is_admin, admin.id)
    return user
