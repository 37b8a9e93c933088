"""
Authentication endpoints: register, login and the current user.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxi_booking.db.session import get_db
from taxi_booking.models.user import User
from taxi_booking.schemas.user import UserCreate, UserResponse, UserLogin, Token
from taxi_booking.services.auth_service import register_user, authenticate_user
from taxi_booking.core.security import get_current_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new customer account."""
    user = await register_user(db, user_data)
    await db.commit()
    return user


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    token = await authenticate_user(db, login_data)
    return Token(access_token=token)


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
