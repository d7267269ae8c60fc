from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, EmailStr

from core.entities.user import User
from core.use_cases.user_use_cases import register_user, authenticate_user, get_balance, get_balance_history
from infrastructure.db.sqlite import SQLiteUserRepository, SQLiteAccountLedger
from infrastructure.web.dependencies import (
    get_user_repo,
    get_ledger,
    get_current_user,
    create_access_token,
)
from infrastructure.web.schemas import UserResponse, LedgerEntryResponse, user_out, ledger_entry_out


router = APIRouter(prefix="/api", tags=["auth"])

basic_security = HTTPBasic()


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str = ""

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

class BalanceResponse(BaseModel):
    balance: str

@router.post("/register", response_model=UserResponse, status_code=201)
def register(payload: RegisterRequest, repo: SQLiteUserRepository = Depends(get_user_repo)):
    user = register_user(repo, email=payload.email, password=payload.password, full_name=payload.full_name)
    return user_out(user)

@router.post("/login", response_model=TokenResponse)
def login(
    credentials: HTTPBasicCredentials = Depends(basic_security),
    repo: SQLiteUserRepository = Depends(get_user_repo),
):
    user = authenticate_user(repo, email=credentials.username, password=credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    token = create_access_token({"sub": str(user.id)})
    return TokenResponse(access_token=token)

@router.get("/me", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    return user_out(current_user)

@router.get("/balance", response_model=BalanceResponse)
def balance(
    current_user: User = Depends(get_current_user),
    ledger: SQLiteAccountLedger = Depends(get_ledger),
):
    return BalanceResponse(balance=str(get_balance(ledger, current_user)))

@router.get("/balance/history", response_model=List[LedgerEntryResponse])
def balance_history(
    limit: int = 50,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    ledger: SQLiteAccountLedger = Depends(get_ledger),
):
    limit = max(1, min(100, int(limit)))  # пагинация, не хотим возвращать много
    offset = max(0, int(offset))
    return [ledger_entry_out(e) for e in get_balance_history(ledger, current_user, limit=limit, offset=offset)]
