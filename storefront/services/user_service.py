# storefront/services/user_service.py
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.exceptions import NotFoundError
from storefront.models.user_models import User


# ---------------------------
# LIST ALL USERS
# ---------------------------
async def list_users(db: AsyncSession, role: Optional[str] = None, is_active: Optional[bool] = None):
    stmt = select(User).order_by(User.id)
    if role:
        stmt = stmt.where(User.role == role.lower())
    if is_active is not None:
        stmt = stmt.where(User.is_active == is_active)
    result = await db.execute(stmt)
    return result.scalars().all()


# ---------------------------
# GET USER BY ID
# ---------------------------
async def get_user_by_id(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalars().first()
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return user
