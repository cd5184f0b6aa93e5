# storefront/routers/sales/orders.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import DEFAULT_LIMIT, DEFAULT_PAGE
from storefront.core.db import get_db
from storefront.models.order_models import OrderStatus
from storefront.schemas.order_schemas import (
    BulkStatusResult,
    BulkStatusUpdate,
    CanReviewOut,
    OrderCancel,
    OrderCreate,
    OrderOut,
    OrderStats,
    OrderStatusUpdate,
    OrderTotalBreakdown,
    OrderTotalRequest,
    OrderTrends,
    ShippingFeeOut,
    TopProduct,
)
from storefront.schemas.response_schemas import MessageResponse, PaginatedList, ResponseMessage
from storefront.services.order_service import (
    bulk_update_status,
    can_review_product,
    cancel_order,
    change_order_status,
    compute_order_total,
    create_order,
    delete_order,
    get_order_for_user,
    get_order_stats,
    get_order_trends,
    get_top_products,
    list_orders,
)
from storefront.services.shipping_service import get_shipping_fee_for_address
from storefront.utils.check_roles import require_role
from storefront.utils.get_user import get_current_user
from storefront.utils.pagination import clamp_page

router = APIRouter(prefix="/orders", tags=["Orders"])
admin_router = APIRouter(prefix="/orders/admin", tags=["Orders (admin)"])

SHOPPERS = ["customer", "admin"]


# =====================================================
# 🔹 CUSTOMER ROUTES
# =====================================================
@router.post("/calculate-total", response_model=ResponseMessage[OrderTotalBreakdown])
@require_role(SHOPPERS)
async def calculate_total_route(
    payload: OrderTotalRequest,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    """
    Price a prospective order. Nothing is reserved or consumed.
    """
    totals = await compute_order_total(db, payload, _user)
    return {"message": "Order total calculated successfully", "data": totals}


@router.get("/shipping-fee/{address_id}", response_model=ResponseMessage[ShippingFeeOut])
@require_role(SHOPPERS)
async def shipping_fee_route(
    address_id: int,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    fee = await get_shipping_fee_for_address(db, address_id, _user)
    return {"message": "Shipping fee calculated successfully", "data": fee}


@router.post("", response_model=ResponseMessage[OrderOut], status_code=status.HTTP_201_CREATED)
@require_role(SHOPPERS)
async def create_order_route(
    payload: OrderCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    order = await create_order(db, payload, _user)
    return {"message": f"Order '{order.order_code}' created successfully", "data": order}


@router.get("", response_model=ResponseMessage[PaginatedList[OrderOut]])
@require_role(SHOPPERS)
async def my_orders_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    page, limit = clamp_page(page, limit)
    data = await list_orders(
        db, page, limit,
        user_id=_user.id, status=status_filter,
        start_date=start_date, end_date=end_date,
        sort_by=sort_by, order=order,
    )
    return {"message": "Orders fetched successfully", "data": data}


@router.get("/{product_id}/can-review", response_model=ResponseMessage[CanReviewOut])
@require_role(SHOPPERS)
async def can_review_route(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    allowed = await can_review_product(db, _user, product_id)
    return {"message": "Review eligibility checked", "data": {"product_id": product_id, "can_review": allowed}}


@router.get("/{order_id}", response_model=ResponseMessage[OrderOut])
@require_role(SHOPPERS)
async def get_order_route(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    order = await get_order_for_user(db, order_id, _user)
    return {"message": "Order fetched successfully", "data": order}


@router.put("/{order_id}/cancel", response_model=ResponseMessage[OrderOut])
@require_role(SHOPPERS)
async def cancel_order_route(
    order_id: int,
    payload: Optional[OrderCancel] = None,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    order = await cancel_order(db, order_id, _user, payload.reason if payload else None)
    return {"message": f"Order '{order.order_code}' cancelled", "data": order}


@router.put("/{order_id}/status", response_model=ResponseMessage[OrderOut])
@require_role(SHOPPERS)
async def customer_status_route(
    order_id: int,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    """
    Customers may only move their own pending orders to cancelled; anything else is rejected.
    """
    order = await change_order_status(db, order_id, payload.status, _user, payload.note)
    return {"message": f"Order '{order.order_code}' is now {order.status.value}", "data": order}


# =====================================================
# 🔹 ADMIN ROUTES
# =====================================================
@admin_router.get("/all", response_model=ResponseMessage[PaginatedList[OrderOut]])
@require_role(["admin"])
async def all_orders_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Order code contains"),
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    page, limit = clamp_page(page, limit)
    data = await list_orders(
        db, page, limit,
        user_id=user_id, status=status_filter,
        start_date=start_date, end_date=end_date, search=search,
        sort_by=sort_by, order=order,
    )
    return {"message": "Orders fetched successfully", "data": data}


@admin_router.get("/stats", response_model=ResponseMessage[OrderStats])
@require_role(["admin"])
async def order_stats_route(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return {"message": "Order statistics fetched successfully", "data": await get_order_stats(db)}


@admin_router.get("/top-products", response_model=ResponseMessage[List[TopProduct]])
@require_role(["admin"])
async def top_products_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    limit: int = Query(5, ge=1, le=50),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    data = await get_top_products(db, limit, start_date, end_date)
    return {"message": "Top products fetched successfully", "data": data}


@admin_router.get("/trends", response_model=ResponseMessage[OrderTrends])
@require_role(["admin"])
async def order_trends_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    days: int = Query(30, ge=1, le=366),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    data = await get_order_trends(db, days, start_date, end_date)
    return {"message": "Order trends fetched successfully", "data": data}


@admin_router.patch("/bulk-update-status", response_model=ResponseMessage[BulkStatusResult])
@require_role(["admin"])
async def bulk_status_route(
    payload: BulkStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    result = await bulk_update_status(db, payload.order_ids, payload.status, _user, payload.note)
    return {
        "message": f"{len(result.updated)} order(s) updated, {len(result.failed)} failed",
        "data": result,
    }


@admin_router.put("/{order_id}/status", response_model=ResponseMessage[OrderOut])
@require_role(["admin"])
async def admin_status_route(
    order_id: int,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    order = await change_order_status(db, order_id, payload.status, _user, payload.note)
    return {"message": f"Order '{order.order_code}' is now {order.status.value}", "data": order}


@admin_router.put("/{order_id}/cancel", response_model=ResponseMessage[OrderOut])
@require_role(["admin"])
async def admin_cancel_route(
    order_id: int,
    payload: Optional[OrderCancel] = None,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    order = await cancel_order(db, order_id, _user, payload.reason if payload else None)
    return {"message": f"Order '{order.order_code}' cancelled", "data": order}


@admin_router.delete("/{order_id}", response_model=MessageResponse)
@require_role(["admin"])
async def delete_order_route(
    order_id: int,
    hard: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    await delete_order(db, order_id, _user, hard=hard)
    return {"message": f"Order {order_id} {'permanently ' if hard else ''}deleted"}
