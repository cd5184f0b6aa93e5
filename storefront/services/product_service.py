# --------------------------
# File: storefront/services/product_service.py
# Description: Service layer for Product CRUD operations and catalog listings
# --------------------------

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.config import NEW_PRODUCT_DAYS, NEW_PRODUCT_MIN_COUNT
from storefront.core.exceptions import BusinessRuleError, NotFoundError
from storefront.models.product_models import Product
from storefront.schemas.product_schemas import (
    NewProductOut,
    ProductCreate,
    ProductDetailOut,
    ProductOut,
    ProductUpdate,
)
from storefront.schemas.response_schemas import PaginatedList
from storefront.utils.activity_helpers import log_user_activity
from storefront.utils.pagination import paginate, sort_clause

# --------------------------
# Allowed fields for sorting
# --------------------------
ALLOWED_SORT_FIELDS = {"id", "name", "category", "base_price", "created_at"}


async def _get_live_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.is_deleted == False)
    )
    product = result.scalars().first()
    if not product:
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
    return product


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: int | None = None):
    stmt = select(Product.id).where(Product.name == name, Product.is_deleted == False)
    if exclude_id is not None:
        stmt = stmt.where(Product.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise BusinessRuleError(f"Product '{name}' already exists", code="DUPLICATE")


# --------------------------
# CREATE PRODUCT
# --------------------------
async def create_product(db: AsyncSession, data: ProductCreate, current_user):
    """
    Create a new product and log the creation in the activity log.
    """
    try:
        await _ensure_unique_name(db, data.name)

        product = Product(**data.model_dump())
        db.add(product)
        await db.flush()  # ensures product.id is available

        await log_user_activity(
            db, current_user, f"{current_user.role.capitalize()} created product '{product.name}' (ID: {product.id})"
        )

        await db.commit()
        await db.refresh(product)
        return {"message": "Product created successfully", "data": ProductOut.model_validate(product)}

    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error creating product: {e}")


# --------------------------
# GET ALL PRODUCTS (with filters + pagination)
# --------------------------
async def get_all_products(
    db: AsyncSession,
    page: int,
    limit: int,
    search: Optional[str] = None,
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    sort_by: str = "created_at",
    order: str = "desc",
) -> dict:
    """
    Fetch products with optional search, filtering, pagination, and sorting.
    """
    stmt = select(Product).where(Product.is_deleted == False)

    if search:
        stmt = stmt.where(
            or_(
                Product.name.ilike(f"%{search}%"),
                Product.category.ilike(f"%{search}%"),
            )
        )
    if category:
        stmt = stmt.where(Product.category == category)
    if is_active is not None:
        stmt = stmt.where(Product.is_active == is_active)

    stmt = stmt.order_by(sort_clause(Product, sort_by, order, ALLOWED_SORT_FIELDS))
    total, products = await paginate(db, stmt, page, limit)

    return {
        "message": "Products fetched successfully",
        "data": PaginatedList[ProductOut].build(
            [ProductOut.model_validate(p) for p in products], page, limit, total
        ),
    }


# --------------------------
# NEW PRODUCTS
# --------------------------
async def list_new_products(db: AsyncSession) -> dict:
    """
    Products created in the last NEW_PRODUCT_DAYS days, newest first.

    When there are fewer than NEW_PRODUCT_MIN_COUNT of them the list is topped
    up with the newest older products; those carry ``is_really_new=False``.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(days=NEW_PRODUCT_DAYS)
    live = [Product.is_deleted == False, Product.is_active == True]

    recent = (
        await db.execute(
            select(Product).where(*live, Product.created_at >= cutoff).order_by(Product.created_at.desc(), Product.id.desc())
        )
    ).scalars().all()

    entries = [NewProductOut(**ProductOut.model_validate(p).model_dump(), is_really_new=True) for p in recent]

    missing = NEW_PRODUCT_MIN_COUNT - len(recent)
    if missing > 0:
        recent_ids = [p.id for p in recent]
        older_stmt = select(Product).where(*live)
        if recent_ids:
            older_stmt = older_stmt.where(Product.id.notin_(recent_ids))
        older = (
            await db.execute(older_stmt.order_by(Product.created_at.desc(), Product.id.desc()).limit(missing))
        ).scalars().all()
        entries.extend(
            NewProductOut(**ProductOut.model_validate(p).model_dump(), is_really_new=False) for p in older
        )

    return {"message": "New products fetched successfully", "data": entries}


# --------------------------
# GET SINGLE PRODUCT
# --------------------------
async def get_product(db: AsyncSession, product_id: int) -> dict:
    product = await _get_live_product(db, product_id)
    return {"message": "Product fetched successfully", "data": ProductDetailOut.model_validate(product)}


# --------------------------
# UPDATE PRODUCT
# --------------------------
async def update_product(db: AsyncSession, product_id: int, data: ProductUpdate, current_user):
    """
    Update product details and log the changes.
    """
    try:
        product = await _get_live_product(db, product_id)

        changes = []
        updates = data.model_dump(exclude_unset=True)

        if updates.get("name") and updates["name"] != product.name:
            await _ensure_unique_name(db, updates["name"], exclude_id=product_id)

        for key, value in updates.items():
            old_val = getattr(product, key)
            if old_val != value:
                changes.append(f"{key}: {old_val} → {value}")
                setattr(product, key, value)

        if changes:
            await log_user_activity(
                db, current_user, f"Updated product '{product.name}' (ID: {product.id}): " + ", ".join(changes)
            )

        await db.commit()
        await db.refresh(product)
        return {"message": "Product updated successfully", "data": ProductOut.model_validate(product)}

    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"Error updating product: {e}")


# --------------------------
# DELETE PRODUCT (soft)
# --------------------------
async def delete_product(db: AsyncSession, product_id: int, current_user):
    product = await _get_live_product(db, product_id)

    product.is_deleted = True
    product.is_active = False
    for variant in product.variants:
        variant.is_active = False

    await log_user_activity(db, current_user, f"Deleted product '{product.name}' (ID: {product.id})")
    await db.commit()
    return {"message": "Product deleted successfully"}
