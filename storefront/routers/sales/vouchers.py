# storefront/routers/sales/vouchers.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import DEFAULT_LIMIT, DEFAULT_PAGE
from storefront.core.db import get_db
from storefront.schemas.response_schemas import PaginatedList, ResponseMessage
from storefront.schemas.voucher_schemas import (
    VoucherApply,
    VoucherApplyResult,
    VoucherCreate,
    VoucherOut,
    VoucherUpdate,
)
from storefront.services.voucher_service import (
    apply_voucher,
    create_voucher,
    delete_voucher,
    get_voucher_by_id,
    list_vouchers,
    reactivate_voucher,
    update_voucher,
)
from storefront.utils.check_roles import require_role
from storefront.utils.get_user import get_current_user
from storefront.utils.pagination import clamp_page

router = APIRouter(prefix="/vouchers", tags=["Vouchers"])


# -----------------------
# CUSTOMER PREVIEW
# -----------------------
@router.post("/apply", response_model=ResponseMessage[VoucherApplyResult])
@require_role(["customer", "admin"])
async def apply_voucher_route(
    payload: VoucherApply,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    """
    Check a code against a subtotal and preview the discount. Usage is not consumed.
    """
    result = await apply_voucher(db, payload, _user)
    return {"message": "Voucher applied successfully", "data": result}


# -----------------------
# ADMIN CRUD
# -----------------------
@router.post("", response_model=ResponseMessage[VoucherOut], status_code=status.HTTP_201_CREATED)
@require_role(["admin"])
async def create_voucher_route(
    payload: VoucherCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    voucher = await create_voucher(db, payload, _user)
    return {"message": f"Voucher '{voucher.code}' created successfully", "data": voucher}


@router.get("", response_model=ResponseMessage[PaginatedList[VoucherOut]])
@require_role(["admin"])
async def list_vouchers_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    code: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    valid_now: bool = Query(False),
    include_deleted: bool = Query(False),
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    page, limit = clamp_page(page, limit)
    data = await list_vouchers(db, page, limit, code, is_active, valid_now, include_deleted, sort_by, order)
    return {"message": "Vouchers fetched successfully", "data": data}


@router.get("/{voucher_id}", response_model=ResponseMessage[VoucherOut])
@require_role(["admin"])
async def get_voucher_route(voucher_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    voucher = await get_voucher_by_id(db, voucher_id)
    return {"message": "Voucher fetched successfully", "data": voucher}


@router.put("/{voucher_id}", response_model=ResponseMessage[VoucherOut])
@require_role(["admin"])
async def update_voucher_route(
    voucher_id: int,
    payload: VoucherUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    voucher = await update_voucher(db, voucher_id, payload, _user)
    return {"message": f"Voucher '{voucher.code}' updated successfully", "data": voucher}


@router.delete("/{voucher_id}", response_model=ResponseMessage[VoucherOut])
@require_role(["admin"])
async def delete_voucher_route(voucher_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    voucher = await delete_voucher(db, voucher_id, _user)
    return {"message": f"Voucher '{voucher.code}' deleted", "data": voucher}


@router.put("/{voucher_id}/reactivate", response_model=ResponseMessage[VoucherOut])
@require_role(["admin"])
async def reactivate_voucher_route(voucher_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    voucher = await reactivate_voucher(db, voucher_id, _user)
    return {"message": f"Voucher '{voucher.code}' reactivated", "data": voucher}
