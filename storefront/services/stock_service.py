# storefront/services/stock_service.py
"""
Stock reservation for checkout.

Every decrement is a conditional ``UPDATE ... WHERE stock >= qty`` so two
checkouts racing for the last units cannot both win. Nothing here commits:
the reservations ride on the caller's transaction and are undone by its
rollback if any later step fails.
"""
import logging
from typing import Dict, Iterable

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.exceptions import BusinessRuleError, NotFoundError
from storefront.models.product_models import ProductVariant

logger = logging.getLogger(__name__)


def merge_quantities(items: Iterable) -> Dict[int, int]:
    """Collapse repeated variants into one requested quantity each, keeping order."""
    requested: Dict[int, int] = {}
    for item in items:
        requested[item.variant_id] = requested.get(item.variant_id, 0) + item.quantity
    return requested


async def decrement_stock(db: AsyncSession, variant_id: int, quantity: int) -> None:
    result = await db.execute(
        update(ProductVariant)
        .where(
            ProductVariant.id == variant_id,
            ProductVariant.is_active == True,
            ProductVariant.stock >= quantity,
        )
        .values(stock=ProductVariant.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    variant = (
        await db.execute(select(ProductVariant).where(ProductVariant.id == variant_id))
    ).scalars().first()
    if variant is None:
        raise NotFoundError(f"Product variant {variant_id} not found", code="VARIANT_NOT_FOUND")
    if not variant.is_active:
        raise BusinessRuleError(f"Product variant {variant_id} is not available", code="OUT_OF_STOCK")
    raise BusinessRuleError(
        f"Insufficient stock for variant {variant_id}: requested {quantity}, available {variant.stock}",
        code="OUT_OF_STOCK",
    )


async def increment_stock(db: AsyncSession, variant_id: int, quantity: int) -> bool:
    result = await db.execute(
        update(ProductVariant)
        .where(ProductVariant.id == variant_id)
        .values(stock=ProductVariant.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def reserve_stock(db: AsyncSession, requested: Dict[int, int]) -> None:
    """Decrement every requested variant, or raise on the first one that cannot be."""
    for variant_id, quantity in requested.items():
        await decrement_stock(db, variant_id, quantity)
    logger.debug("Reserved stock for %d variant(s)", len(requested))


async def release_stock(db: AsyncSession, order_items) -> None:
    """Give back the quantities held by an order's line items."""
    for item in order_items:
        if item.variant_id is None:
            continue
        if not await increment_stock(db, item.variant_id, item.quantity):
            # Variant was removed since checkout; nothing to return the units to.
            logger.warning("Variant %s no longer exists; %s unit(s) not restocked", item.variant_id, item.quantity)
