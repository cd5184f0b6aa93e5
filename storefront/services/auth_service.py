# storefront/services/auth_service.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Tuple

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ADMIN_ACCESS_TOKEN_EXPIRE_MINUTES,
    REFRESH_TOKEN_EXPIRE_DAYS,
)
from storefront.core.exceptions import BusinessRuleError
from storefront.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from storefront.models.user_models import ROLE_CUSTOMER, RefreshToken, User
from storefront.schemas.user_schemas import UserRegister
from storefront.utils.activity_helpers import log_user_activity

logger = logging.getLogger(__name__)


async def register_user(db: AsyncSession, data: UserRegister) -> User:
    """Self-service sign-up always creates a customer."""
    try:
        existing = await db.execute(select(User).where(User.username == data.username))
        if existing.scalars().first():
            raise BusinessRuleError("Username already exists", code="DUPLICATE")

        user = User(
            username=data.username,
            full_name=data.full_name,
            password_hash=hash_password(data.password),
            role=ROLE_CUSTOMER,
        )
        db.add(user)
        await db.flush()

        await log_user_activity(db, user, f"Registered customer account {user.username} (ID: {user.id})")

        await db.commit()
        await db.refresh(user)
        return user
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error registering user: {e}")


async def authenticate_user(db: AsyncSession, username: str, password: str) -> User:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalars().first()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive.")
    return user


def _issue_tokens(user: User) -> Tuple[str, str]:
    expire_minutes = ADMIN_ACCESS_TOKEN_EXPIRE_MINUTES if user.is_admin else ACCESS_TOKEN_EXPIRE_MINUTES

    access_token = create_access_token(
        {"sub": user.username, "user_id": user.id, "role": user.role},
        token_version=user.token_version,
        expires_delta=timedelta(minutes=expire_minutes),
    )
    # jti keeps two refresh tokens minted in the same second distinct
    refresh_token = create_refresh_token(
        {"sub": user.username, "user_id": user.id, "jti": uuid.uuid4().hex},
        expires_delta=timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
    )
    return access_token, refresh_token


async def create_tokens(db: AsyncSession, user: User) -> Tuple[str, str]:
    """
    Create new access and refresh tokens and persist the refresh token.
    Access tokens carry token_version so logout invalidates them immediately.
    """
    access_token, refresh_token = _issue_tokens(user)

    db.add(RefreshToken(user_id=user.id, token=refresh_token))
    user.last_login = datetime.now(timezone.utc)
    await db.commit()

    logger.info("Issued tokens for user %s", user.id)
    return access_token, refresh_token


async def refresh_access_token(db: AsyncSession, old_refresh_token: str) -> Dict:
    """
    Rotate refresh token: the stored record must exist and not be revoked.
    The old record is revoked and a new one stored in the same commit.
    """
    try:
        payload = decode_token(old_refresh_token)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired refresh token")

    if payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    result = await db.execute(select(RefreshToken).where(RefreshToken.token == old_refresh_token))
    db_token = result.scalars().first()
    if not db_token or db_token.revoked:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or reused refresh token")

    user = db_token.user
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    db_token.revoked = True
    access_token, refresh_token = _issue_tokens(user)
    db.add(RefreshToken(user_id=user.id, token=refresh_token))
    await db.commit()

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
    }


async def logout_user(db: AsyncSession, user: User) -> Dict:
    user.token_version += 1

    await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user.id)
        .values(revoked=True)
    )
    await log_user_activity(db, user, f"Logged out {user.username}")
    await db.commit()

    return {"message": "Logged out successfully"}
