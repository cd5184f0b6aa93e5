# storefront/routers/auth/users.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.db import get_db
from storefront.schemas.user_schemas import UserResponse, UsersListResponse
from storefront.services.user_service import get_user_by_id, list_users
from storefront.utils.check_roles import require_role
from storefront.utils.get_user import get_current_user

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me(_user=Depends(get_current_user)):
    return {"message": "Current user fetched successfully.", "data": _user}


# ---------------------------
# LIST ALL USERS
# ---------------------------
@router.get("/", response_model=UsersListResponse)
@require_role(["admin"])
async def list_users_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
):
    users = await list_users(db, role, is_active)
    return {"message": f"{len(users)} users fetched successfully.", "data": users}


# ---------------------------
# GET SINGLE USER
# ---------------------------
@router.get("/{user_id}", response_model=UserResponse)
@require_role(["admin"])
async def get_user_route(user_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    target_user = await get_user_by_id(db, user_id)
    return {"message": f"User with ID {user_id} fetched successfully.", "data": target_user}
