# storefront/routers/auth/activity.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import DEFAULT_LIMIT, DEFAULT_PAGE
from storefront.core.db import get_db
from storefront.schemas.activity_schemas import UserActivityListResponse
from storefront.services.activity_service import get_user_activities
from storefront.utils.check_roles import require_role
from storefront.utils.get_user import get_current_user
from storefront.utils.pagination import clamp_page

router = APIRouter(prefix="/activities", tags=["User Activities"])


@router.get("/", response_model=UserActivityListResponse)
@require_role(["admin"])
async def list_user_activities(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    user_id: Optional[int] = Query(None),
    username: Optional[str] = Query(None),
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    """
    Fetch the audit trail with pagination, filtering, and sorting.
    """
    page, limit = clamp_page(page, limit)
    data = await get_user_activities(db, page, limit, user_id, username, sort_by, order)
    return UserActivityListResponse(message="User activities fetched successfully", data=data)
