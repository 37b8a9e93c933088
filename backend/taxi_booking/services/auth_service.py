"""
Authentication service handling user registration and login.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from taxi_booking.models.user import User
from taxi_booking.schemas.user import UserCreate, UserLogin
from taxi_booking.core.security import hash_password, verify_password, create_access_token
from taxi_booking.core.logging import get_logger
from taxi_booking.infrastructure.sql_stores import SqlIdentityStore

logger = get_logger(__name__)


def _email_taken() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="User already exists with this email",
    )


def issue_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "role": user.role})


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new customer account with a hashed password.
    Raises 409 if the email is already registered.
    """
    identity = SqlIdentityStore(db)
    if await identity.find_user_by_email(user_data.email):
        logger.warning("registration_failed", reason="email_exists", email=user_data.email)
        raise _email_taken()

    user = User(
        name=user_data.name,
        email=user_data.email.lower(),
        phone=user_data.phone,
        hashed_password=hash_password(user_data.password),
        role="user",
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        await db.rollback()
        raise _email_taken()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, email=user.email)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate user and return JWT access token.
    Raises 401 if credentials are invalid, 403 if the account is deactivated.
    """
    user = await SqlIdentityStore(db).find_user_by_email(login_data.email)

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been deactivated. Please contact support.",
        )

    token = issue_token(user)
    logger.info("user_logged_in", user_id=user.id, role=user.role)
    return token
