# storefront/services/order_service.py
import logging
import random
import string
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List

from fastapi import HTTPException
from sqlalchemy import case, exists, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.exceptions import StateError, StoreError, ValidationError, NotFoundError
from storefront.models.order_models import Order, OrderItem, OrderStatus
from storefront.schemas.order_schemas import (
    BulkFailure,
    BulkStatusResult,
    OrderCreate,
    OrderOut,
    OrderStats,
    OrderTotalBreakdown,
    OrderTotalRequest,
    OrderTrends,
    TopProduct,
    TrendPoint,
)
from storefront.schemas.response_schemas import PaginatedList
from storefront.services.order_status import ensure_transition
from storefront.services.payment_service import get_active_payment_method
from storefront.services.pricing_service import calculate_order_total
from storefront.services.stock_service import merge_quantities, release_stock, reserve_stock
from storefront.services.voucher_service import consume_voucher
from storefront.utils.activity_helpers import log_user_activity
from storefront.utils.decimal_utils import to_decimal
from storefront.utils.pagination import paginate, sort_clause

logger = logging.getLogger(__name__)

ALLOWED_SORT_FIELDS = {"id", "order_code", "status", "final_total", "created_at", "updated_at"}


# =====================================================
# 🔹 HELPERS
# =====================================================
def generate_order_code(prefix: str = "ORD") -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    suffix = ''.join(random.choices(string.digits, k=6))
    return f"{prefix}-{ts}-{suffix}"


def history_entry(status: OrderStatus, note: str | None, actor) -> dict:
    return {
        "date": datetime.now(timezone.utc).isoformat(),
        "status": OrderStatus(status).value,
        "note": note,
        "actor": getattr(actor, "role", None),
    }


async def _reload_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_order_for_user(db: AsyncSession, order_id: int, user) -> Order:
    """Admins see every live order; customers only their own."""
    stmt = select(Order).where(Order.id == order_id, Order.is_deleted == False)
    if not user.is_admin:
        stmt = stmt.where(Order.user_id == user.id)
    order = (await db.execute(stmt.execution_options(populate_existing=True))).scalars().first()
    if not order:
        raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
    return order


# =====================================================
# 🔹 CALCULATE TOTAL (no side effects)
# =====================================================
async def compute_order_total(db: AsyncSession, payload: OrderTotalRequest, user) -> OrderTotalBreakdown:
    priced = await calculate_order_total(db, payload.items, payload.address_id, payload.voucher_code, user)
    return priced.totals


# =====================================================
# 🔹 CREATE ORDER
# =====================================================
async def create_order(db: AsyncSession, payload: OrderCreate, user) -> Order:
    """
    Reserve stock, price the order, consume the voucher and persist the order
    in ``pending``, all in one transaction.
    """
    if not payload.items:
        raise ValidationError("Order must contain at least one item", code="EMPTY_ORDER")
    if payload.address_id is None:
        raise ValidationError("Shipping address is required", code="MISSING_ADDRESS")

    try:
        payment_method = await get_active_payment_method(db, payload.payment_method_id)
        await reserve_stock(db, merge_quantities(payload.items))
        priced = await calculate_order_total(db, payload.items, payload.address_id, payload.voucher_code, user)
        totals = priced.totals

        order = Order(
            order_code=generate_order_code(),
            user_id=user.id,
            address_id=priced.address.id,
            payment_method_id=payment_method.id,
            shipping_address=priced.address.snapshot(),
            voucher_id=priced.voucher.id if priced.voucher else None,
            voucher_code=totals.voucher_code,
            subtotal=totals.subtotal,
            shipping_fee=totals.shipping_fee,
            discount_amount=totals.discount_amount,
            final_total=totals.final_total,
            status=OrderStatus.PENDING,
            status_history=[history_entry(OrderStatus.PENDING, "Order placed", user)],
            items=[OrderItem(**line) for line in priced.lines],
        )
        db.add(order)
        await db.flush()

        if priced.voucher:
            await consume_voucher(db, priced.voucher, user, priced.voucher_uses, order.id)

        await log_user_activity(
            db, user, f"Placed order '{order.order_code}' ({len(order.items)} item(s), total {totals.final_total})"
        )

        await db.commit()
        order_id = order.id
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception("Order creation failed")
        raise HTTPException(status_code=500, detail=f"Error creating order: {e}")

    logger.info("Order %s created for user %s", order.order_code, user.id)
    return await _reload_order(db, order_id)


# =====================================================
# 🔹 LIST / GET
# =====================================================
async def list_orders(
    db: AsyncSession,
    page: int,
    limit: int,
    user_id: int | None = None,
    status: OrderStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    order: str = "desc",
) -> PaginatedList[OrderOut]:
    filters = [Order.is_deleted == False]
    if user_id is not None:
        filters.append(Order.user_id == user_id)
    if status:
        filters.append(Order.status == status)
    if start_date:
        filters.append(Order.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        filters.append(Order.created_at <= datetime.combine(end_date, time.max))
    if search:
        filters.append(Order.order_code.ilike(f"%{search}%"))

    stmt = select(Order).where(*filters).order_by(sort_clause(Order, sort_by, order, ALLOWED_SORT_FIELDS))
    total, orders = await paginate(db, stmt, page, limit)
    return PaginatedList[OrderOut].build([OrderOut.model_validate(o) for o in orders], page, limit, total)


# =====================================================
# 🔹 STATUS CHANGES
# =====================================================
async def change_order_status(
    db: AsyncSession,
    order_id: int,
    target: OrderStatus,
    actor,
    note: str | None = None,
) -> Order:
    target = OrderStatus(target)
    try:
        order = await get_order_for_user(db, order_id, actor)
        current = OrderStatus(order.status)
        ensure_transition(current, target, actor.role)

        values = {"status": target}
        if target == OrderStatus.CANCELLED:
            values["cancel_reason"] = note

        # Guarded on the status we validated against; a concurrent change loses.
        result = await db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StateError("Order was modified by another request", code="CONCURRENT_UPDATE")

        if target == OrderStatus.CANCELLED:
            await release_stock(db, order.items)

        order.status_history.append(history_entry(target, note, actor))

        await log_user_activity(
            db, actor, f"Changed order '{order.order_code}' status: {current.value} → {target.value}"
        )

        await db.commit()
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception("Status change failed for order %s", order_id)
        raise HTTPException(status_code=500, detail=f"Error updating order status: {e}")

    logger.info("Order %s moved %s -> %s by %s", order_id, current.value, target.value, actor.role)
    return await _reload_order(db, order_id)


async def cancel_order(db: AsyncSession, order_id: int, actor, reason: str | None = None) -> Order:
    return await change_order_status(db, order_id, OrderStatus.CANCELLED, actor, note=reason)


async def _refresh_actor(db: AsyncSession, actor):
    # A failed change rolls back and expires everything the session holds
    if actor in db:
        await db.refresh(actor)


async def bulk_update_status(
    db: AsyncSession,
    order_ids: List[int],
    target: OrderStatus,
    actor,
    note: str | None = None,
) -> BulkStatusResult:
    """Each order goes through the state machine on its own; failures do not stop the rest."""
    updated, failed = [], []
    for order_id in dict.fromkeys(order_ids):
        try:
            await change_order_status(db, order_id, target, actor, note)
            updated.append(order_id)
        except StoreError as e:
            failed.append(BulkFailure(order_id=order_id, code=e.code, detail=e.detail))
            await _refresh_actor(db, actor)
        except HTTPException as e:
            failed.append(BulkFailure(order_id=order_id, code="ERROR", detail=str(e.detail)))
            await _refresh_actor(db, actor)
    return BulkStatusResult(updated=updated, failed=failed)


# =====================================================
# 🔹 DELETE (cancelled orders only)
# =====================================================
async def delete_order(db: AsyncSession, order_id: int, actor, hard: bool = False) -> None:
    order = await get_order_for_user(db, order_id, actor)
    if OrderStatus(order.status) != OrderStatus.CANCELLED:
        raise StateError("Only cancelled orders can be deleted", code="INVALID_STATE")

    try:
        if hard:
            await db.delete(order)
        else:
            order.is_deleted = True

        await log_user_activity(
            db, actor, f"{'Hard' if hard else 'Soft'}-deleted order '{order.order_code}' (ID: {order.id})"
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error deleting order: {e}")


# =====================================================
# 🔹 STATISTICS
# =====================================================
async def get_order_stats(db: AsyncSession) -> OrderStats:
    rows = await db.execute(
        select(Order.status, func.count(Order.id))
        .where(Order.is_deleted == False)
        .group_by(Order.status)
    )
    status_counts = {s.value: 0 for s in OrderStatus}
    for status, count in rows.all():
        status_counts[OrderStatus(status).value] = count

    revenue = await db.execute(
        select(func.sum(Order.final_total)).where(
            Order.is_deleted == False, Order.status == OrderStatus.DELIVERED
        )
    )
    total_revenue = to_decimal(revenue.scalar() or 0)
    delivered = status_counts[OrderStatus.DELIVERED.value]
    average = to_decimal(total_revenue / delivered) if delivered else Decimal("0.00")

    return OrderStats(
        total_orders=sum(status_counts.values()),
        total_revenue=total_revenue,
        average_order_value=average,
        status_counts=status_counts,
    )


# =====================================================
# 🔹 REVIEW ELIGIBILITY
# =====================================================
async def can_review_product(db: AsyncSession, user, product_id: int) -> bool:
    """A customer may review a product once an order containing it is delivered."""
    stmt = select(
        exists().where(
            OrderItem.order_id == Order.id,
            OrderItem.product_id == product_id,
            Order.user_id == user.id,
            Order.status == OrderStatus.DELIVERED,
            Order.is_deleted == False,
        )
    )
    return bool((await db.execute(stmt)).scalar())


# =====================================================
# 🔹 ANALYTICS
# =====================================================
async def get_top_products(
    db: AsyncSession,
    limit: int = 5,
    start_date: date | None = None,
    end_date: date | None = None,
) -> List[TopProduct]:
    """Best sellers by quantity across live, non-cancelled orders."""
    filters = [Order.is_deleted == False, Order.status != OrderStatus.CANCELLED, OrderItem.product_id.isnot(None)]
    if start_date:
        filters.append(Order.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        filters.append(Order.created_at <= datetime.combine(end_date, time.max))

    total_quantity = func.sum(OrderItem.quantity)
    rows = await db.execute(
        select(
            OrderItem.product_id,
            func.max(OrderItem.product_name),
            total_quantity,
            func.count(func.distinct(OrderItem.order_id)),
            func.sum(OrderItem.line_total),
        )
        .join(Order, Order.id == OrderItem.order_id)
        .where(*filters)
        .group_by(OrderItem.product_id)
        .order_by(total_quantity.desc(), OrderItem.product_id)
        .limit(limit)
    )
    return [
        TopProduct(
            product_id=product_id,
            product_name=name,
            total_quantity=quantity,
            order_count=orders,
            revenue=to_decimal(revenue or 0),
        )
        for product_id, name, quantity, orders, revenue in rows.all()
    ]


async def get_order_trends(
    db: AsyncSession,
    days: int = 30,
    start_date: date | None = None,
    end_date: date | None = None,
) -> OrderTrends:
    """
    Orders placed and delivered revenue per day. Without explicit dates the
    window is the last ``days`` days up to today (UTC).
    """
    end_date = end_date or datetime.now(timezone.utc).date()
    start_date = start_date or end_date - timedelta(days=days - 1)
    if start_date > end_date:
        raise ValidationError("Start date must not be after end date", code="INVALID_DATE_RANGE")

    day = func.date(Order.created_at)
    delivered_total = case((Order.status == OrderStatus.DELIVERED, Order.final_total), else_=0)
    rows = await db.execute(
        select(day, func.count(Order.id), func.sum(delivered_total))
        .where(
            Order.is_deleted == False,
            Order.created_at >= datetime.combine(start_date, time.min),
            Order.created_at <= datetime.combine(end_date, time.max),
        )
        .group_by(day)
        .order_by(day)
    )
    # SQLite returns the day as text, Postgres as a date
    points = [
        TrendPoint(day=date.fromisoformat(str(d)), order_count=count, revenue=to_decimal(revenue or 0))
        for d, count, revenue in rows.all()
    ]
    return OrderTrends(
        start_date=start_date,
        end_date=end_date,
        total_in_period=sum(p.order_count for p in points),
        revenue_in_period=to_decimal(sum((p.revenue for p in points), Decimal("0"))),
        trends=points,
    )
