import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Iterator

from fastapi import Depends, HTTPException, Header, status
from jose import jwt, JWTError

from config.settings import settings
from core.entities.user import User
from core.errors import AuthorizationError
from core.services.notification_dispatcher import NotificationDispatcher
from core.services.proof_storage import ProofStorage
from core.use_cases.transaction_use_cases import TransactionEngine, EnginePolicy
from infrastructure.db.sqlite import (
    DeskConnection,
    SQLiteUnitOfWork,
    SQLiteUserRepository,
    SQLiteAccountLedger,
    connect,
)
from infrastructure.db.sqlite_catalog import SQLiteExchangeRateRepository, SQLitePaymentAccountRepository
from infrastructure.db.sqlite_notifications import SQLiteNotificationRepository
from infrastructure.db.sqlite_transactions import SQLiteTransactionRepository, SQLiteWithdrawalRepository
from infrastructure.storage.local_storage import LocalProofStorage

logger = logging.getLogger(__name__)


def get_db() -> Iterator[DeskConnection]:
    conn = connect(settings.DB_PATH, timeout=settings.DB_TIMEOUT_SECONDS)
    try:
        yield conn
    finally:
        conn.close()

def get_user_repo(conn: DeskConnection = Depends(get_db)) -> SQLiteUserRepository:
    return SQLiteUserRepository(conn)

def get_ledger(conn: DeskConnection = Depends(get_db)) -> SQLiteAccountLedger:
    return SQLiteAccountLedger(conn)

def get_rate_repo(conn: DeskConnection = Depends(get_db)) -> SQLiteExchangeRateRepository:
    return SQLiteExchangeRateRepository(conn)

def get_account_repo(conn: DeskConnection = Depends(get_db)) -> SQLitePaymentAccountRepository:
    return SQLitePaymentAccountRepository(conn)

def get_notification_repo(conn: DeskConnection = Depends(get_db)) -> SQLiteNotificationRepository:
    return SQLiteNotificationRepository(conn)

def get_notifier(repo: SQLiteNotificationRepository = Depends(get_notification_repo)) -> NotificationDispatcher:
    return NotificationDispatcher(repo)

def get_proof_storage() -> ProofStorage:
    return LocalProofStorage(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX, settings.MAX_UPLOAD_BYTES)

def build_engine(conn: DeskConnection) -> TransactionEngine:
    return TransactionEngine(
        uow=SQLiteUnitOfWork(conn),
        transactions=SQLiteTransactionRepository(conn),
        withdrawals=SQLiteWithdrawalRepository(conn),
        ledger=SQLiteAccountLedger(conn),
        rates=SQLiteExchangeRateRepository(conn),
        accounts=SQLitePaymentAccountRepository(conn),
        notifier=NotificationDispatcher(SQLiteNotificationRepository(conn)),
        policy=EnginePolicy.from_settings(settings),
    )

def get_engine(conn: DeskConnection = Depends(get_db)) -> TransactionEngine:
    return build_engine(conn)


# jwt авторизация
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def get_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return authorization.split(" ", 1)[1]

async def get_current_user(
    token: str = Depends(get_bearer_token),
    repo: SQLiteUserRepository = Depends(get_user_repo),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        sub = payload.get("sub")
        if sub is None:
            raise credentials_exception
        user_id = int(sub)
    except (JWTError, ValueError):
        raise credentials_exception

    user = repo.get_by_id(user_id)
    if user is None:
        raise credentials_exception
    return user

async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        logger.warning("security: user %s called an admin endpoint", current_user.id)
        raise AuthorizationError("Administrator access required")
    return current_user
