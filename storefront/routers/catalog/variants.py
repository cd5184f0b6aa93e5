# storefront/routers/catalog/variants.py
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import DEFAULT_LIMIT, DEFAULT_PAGE
from storefront.core.db import get_db
from storefront.schemas.product_schemas import StockUpdate, VariantCreate, VariantOut, VariantUpdate
from storefront.schemas.response_schemas import MessageResponse, PaginatedList, ResponseMessage
from storefront.services.variant_service import (
    create_variant,
    delete_variant,
    get_variant,
    list_variants,
    list_variants_by_product,
    update_stock,
    update_variant,
)
from storefront.utils.check_roles import require_role
from storefront.utils.get_user import get_current_user
from storefront.utils.pagination import clamp_page

router = APIRouter(prefix="/product-variants", tags=["Product Variants"])


@router.post("", response_model=ResponseMessage[VariantOut], status_code=status.HTTP_201_CREATED)
@require_role(["admin"])
async def create_variant_route(
    data: VariantCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await create_variant(db, data, _user)


@router.get("", response_model=ResponseMessage[PaginatedList[VariantOut]])
async def list_variants_route(
    db: AsyncSession = Depends(get_db),
    product_id: Optional[int] = Query(None),
    color: Optional[str] = Query(None),
    size: Optional[str] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    min_stock: Optional[int] = Query(None, ge=0),
    max_stock: Optional[int] = Query(None, ge=0),
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    page, limit = clamp_page(page, limit)
    return await list_variants(
        db, page, limit,
        product_id=product_id, color=color, size=size,
        min_price=min_price, max_price=max_price,
        min_stock=min_stock, max_stock=max_stock,
        is_active=True, sort_by=sort_by, order=order,
    )


@router.get("/product/{product_id}", response_model=ResponseMessage[List[VariantOut]])
async def variants_by_product(product_id: int, db: AsyncSession = Depends(get_db)):
    return await list_variants_by_product(db, product_id)


@router.get("/{variant_id}", response_model=ResponseMessage[VariantOut])
async def get_variant_route(variant_id: int, db: AsyncSession = Depends(get_db)):
    return await get_variant(db, variant_id)


@router.put("/{variant_id}", response_model=ResponseMessage[VariantOut])
@require_role(["admin"])
async def update_variant_route(
    variant_id: int,
    data: VariantUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await update_variant(db, variant_id, data, _user)


# -----------------------------------------------------------
# ADJUST STOCK
# -----------------------------------------------------------
@router.patch("/{variant_id}/stock", response_model=ResponseMessage[VariantOut])
@require_role(["admin"])
async def update_stock_route(
    variant_id: int,
    data: StockUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    """
    Increase or decrease a variant's stock. A decrease larger than the stock fails with OUT_OF_STOCK.
    """
    return await update_stock(db, variant_id, data, _user)


@router.delete("/{variant_id}", response_model=MessageResponse)
@require_role(["admin"])
async def delete_variant_route(
    variant_id: int,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await delete_variant(db, variant_id, _user)
