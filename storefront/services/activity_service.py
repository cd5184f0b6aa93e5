# storefront/services/activity_service.py
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.models.activity_models import UserActivity
from storefront.schemas.activity_schemas import UserActivityOut
from storefront.schemas.response_schemas import PaginatedList
from storefront.utils.pagination import paginate, sort_clause

ALLOWED_SORT_FIELDS = {"id", "user_id", "username", "created_at"}


async def get_user_activities(
    db: AsyncSession,
    page: int,
    limit: int,
    user_id: Optional[int] = None,
    username: Optional[str] = None,
    sort_by: str = "created_at",
    order: str = "desc",
) -> PaginatedList[UserActivityOut]:
    """
    Fetch the audit trail with optional filters and sorting.
    """
    stmt = select(UserActivity)
    if user_id:
        stmt = stmt.where(UserActivity.user_id == user_id)
    if username:
        stmt = stmt.where(UserActivity.username.ilike(f"%{username}%"))

    stmt = stmt.order_by(sort_clause(UserActivity, sort_by, order, ALLOWED_SORT_FIELDS), UserActivity.id.desc())
    total, activities = await paginate(db, stmt, page, limit)
    return PaginatedList[UserActivityOut].build(
        [UserActivityOut.model_validate(a) for a in activities], page, limit, total
    )
