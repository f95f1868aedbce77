"""Auth routes: register, login, own account (GET/PATCH /me)."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from peertutor.auth.tokens import create_access_token
from peertutor.database import get_db
from peertutor.deps import get_current_account
from peertutor.models import Account
from peertutor.schemas.account import AccountCreate, AccountResponse, AccountUpdate, LoginRequest, Token
from peertutor.services.accounts import authenticate, register_account, update_account

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def register(body: AccountCreate, db: AsyncSession = Depends(get_db)):
    """Create a tutor or learner account. Tutors start with an empty profile."""
    return await register_account(db, body.email, body.password, body.full_name, body.role)


@router.post("/login", response_model=Token)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email + password; returns JWT access_token."""
    account = await authenticate(db, body.email, body.password)
    if account is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    return Token(access_token=create_access_token(account.id, account.role.value))


@router.get("/me", response_model=AccountResponse)
async def me(current_account: Account = Depends(get_current_account)):
    return current_account


@router.patch("/me", response_model=AccountResponse)
async def update_me(
    body: AccountUpdate,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """Update own display name."""
    return await update_account(db, current_account.id, current_account.id, full_name=body.full_name)
