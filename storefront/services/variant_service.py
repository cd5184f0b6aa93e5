# storefront/services/variant_service.py
import logging
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.exceptions import BusinessRuleError, NotFoundError
from storefront.models.product_models import Product, ProductVariant
from storefront.schemas.product_schemas import StockUpdate, VariantCreate, VariantOut, VariantUpdate
from storefront.schemas.response_schemas import PaginatedList
from storefront.services.stock_service import decrement_stock, increment_stock
from storefront.utils.activity_helpers import log_user_activity
from storefront.utils.pagination import paginate, sort_clause

logger = logging.getLogger(__name__)

ALLOWED_SORT_FIELDS = {"id", "product_id", "color", "size", "price", "stock", "created_at"}


async def _get_variant(db: AsyncSession, variant_id: int, populate: bool = False) -> ProductVariant:
    stmt = select(ProductVariant).where(ProductVariant.id == variant_id)
    if populate:
        stmt = stmt.execution_options(populate_existing=True)
    variant = (await db.execute(stmt)).scalars().first()
    if not variant:
        raise NotFoundError("Product variant not found", code="VARIANT_NOT_FOUND")
    return variant


async def _ensure_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.is_deleted == False)
    )
    product = result.scalars().first()
    if not product:
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
    return product


# ---------------------------------------------------
# CREATE VARIANT
# ---------------------------------------------------
async def create_variant(db: AsyncSession, data: VariantCreate, current_user) -> dict:
    try:
        product = await _ensure_product(db, data.product_id)

        variant = ProductVariant(**data.model_dump())
        db.add(variant)
        try:
            await db.flush()
        except IntegrityError:
            raise BusinessRuleError(
                f"Variant {data.color}/{data.size} already exists for product {product.id}", code="DUPLICATE"
            )

        await log_user_activity(
            db, current_user,
            f"Created variant {variant.color}/{variant.size} of '{product.name}' (ID: {variant.id}, stock {variant.stock})",
        )

        await db.commit()
        await db.refresh(variant)
        return {"message": "Variant created successfully", "data": VariantOut.model_validate(variant)}
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error creating variant: {e}")


# ---------------------------------------------------
# LIST VARIANTS (filters + pagination)
# ---------------------------------------------------
async def list_variants(
    db: AsyncSession,
    page: int,
    limit: int,
    product_id: Optional[int] = None,
    color: Optional[str] = None,
    size: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    min_stock: Optional[int] = None,
    max_stock: Optional[int] = None,
    is_active: Optional[bool] = None,
    sort_by: str = "created_at",
    order: str = "desc",
) -> dict:
    stmt = select(ProductVariant)

    if product_id is not None:
        stmt = stmt.where(ProductVariant.product_id == product_id)
    if color:
        stmt = stmt.where(ProductVariant.color.ilike(color))
    if size:
        stmt = stmt.where(ProductVariant.size.ilike(size))
    if min_price is not None:
        stmt = stmt.where(ProductVariant.price >= min_price)
    if max_price is not None:
        stmt = stmt.where(ProductVariant.price <= max_price)
    if min_stock is not None:
        stmt = stmt.where(ProductVariant.stock >= min_stock)
    if max_stock is not None:
        stmt = stmt.where(ProductVariant.stock <= max_stock)
    if is_active is not None:
        stmt = stmt.where(ProductVariant.is_active == is_active)

    stmt = stmt.order_by(sort_clause(ProductVariant, sort_by, order, ALLOWED_SORT_FIELDS), ProductVariant.id)
    total, variants = await paginate(db, stmt, page, limit)
    return {
        "message": "Variants fetched successfully",
        "data": PaginatedList[VariantOut].build(
            [VariantOut.model_validate(v) for v in variants], page, limit, total
        ),
    }


async def list_variants_by_product(db: AsyncSession, product_id: int) -> dict:
    await _ensure_product(db, product_id)
    result = await db.execute(
        select(ProductVariant)
        .where(ProductVariant.product_id == product_id, ProductVariant.is_active == True)
        .order_by(ProductVariant.id)
    )
    return {
        "message": "Variants fetched successfully",
        "data": [VariantOut.model_validate(v) for v in result.scalars().all()],
    }


async def get_variant(db: AsyncSession, variant_id: int) -> dict:
    variant = await _get_variant(db, variant_id)
    return {"message": "Variant fetched successfully", "data": VariantOut.model_validate(variant)}


# ---------------------------------------------------
# UPDATE VARIANT
# ---------------------------------------------------
async def update_variant(db: AsyncSession, variant_id: int, data: VariantUpdate, current_user) -> dict:
    try:
        variant = await _get_variant(db, variant_id)

        changes = []
        for key, value in data.model_dump(exclude_unset=True).items():
            old_val = getattr(variant, key)
            if old_val != value:
                changes.append(f"{key}: {old_val} → {value}")
                setattr(variant, key, value)

        try:
            await db.flush()
        except IntegrityError:
            raise BusinessRuleError("Another variant with this color and size already exists", code="DUPLICATE")

        if changes:
            await log_user_activity(db, current_user, f"Updated variant ID {variant.id}: " + ", ".join(changes))

        await db.commit()
        await db.refresh(variant)
        return {"message": "Variant updated successfully", "data": VariantOut.model_validate(variant)}
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error updating variant: {e}")


# ---------------------------------------------------
# ADJUST STOCK
# ---------------------------------------------------
async def update_stock(db: AsyncSession, variant_id: int, data: StockUpdate, current_user) -> dict:
    """Increase or decrease stock atomically; a decrease never drives stock below zero."""
    try:
        await _get_variant(db, variant_id)

        if data.operation == "increase":
            await increment_stock(db, variant_id, data.quantity_change)
        else:
            await decrement_stock(db, variant_id, data.quantity_change)

        await log_user_activity(
            db, current_user, f"Stock {data.operation}d by {data.quantity_change} for variant ID {variant_id}"
        )
        await db.commit()
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error updating stock: {e}")

    variant = await _get_variant(db, variant_id, populate=True)
    logger.info("Variant %s stock now %s", variant_id, variant.stock)
    return {"message": "Stock updated successfully", "data": VariantOut.model_validate(variant)}


# ---------------------------------------------------
# DELETE VARIANT (deactivate)
# ---------------------------------------------------
async def delete_variant(db: AsyncSession, variant_id: int, current_user) -> dict:
    """Variants referenced by past orders stay in place; deleting deactivates them."""
    variant = await _get_variant(db, variant_id)
    variant.is_active = False

    await log_user_activity(db, current_user, f"Deactivated variant ID {variant.id}")
    await db.commit()
    return {"message": "Variant deleted successfully"}
