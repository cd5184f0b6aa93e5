# storefront/routers/catalog/products.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import DEFAULT_LIMIT, DEFAULT_PAGE
from storefront.core.db import get_db
from storefront.schemas.product_schemas import (
    NewProductOut,
    ProductCreate,
    ProductDetailOut,
    ProductOut,
    ProductUpdate,
)
from storefront.schemas.response_schemas import MessageResponse, PaginatedList, ResponseMessage
from storefront.services.product_service import (
    create_product,
    delete_product,
    get_all_products,
    get_product,
    list_new_products,
    update_product,
)
from storefront.utils.check_roles import require_role
from storefront.utils.get_user import get_current_user
from storefront.utils.pagination import clamp_page

router = APIRouter(prefix="/products", tags=["Products"])


# -----------------------------------------------------------
# CREATE PRODUCT
# -----------------------------------------------------------
@router.post("", response_model=ResponseMessage[ProductOut], status_code=status.HTTP_201_CREATED)
@require_role(["admin"])
async def create_product_route(
    data: ProductCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await create_product(db, data, _user)


# -----------------------------------------------------------
# LIST ALL PRODUCTS (public)
# -----------------------------------------------------------
@router.get("", response_model=ResponseMessage[PaginatedList[ProductOut]])
async def list_products(
    db: AsyncSession = Depends(get_db),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    """
    List active products with optional search, category filter, pagination and sorting.
    """
    page, limit = clamp_page(page, limit)
    return await get_all_products(db, page, limit, search, category, True, sort_by, order)


# -----------------------------------------------------------
# NEW PRODUCTS (public)
# -----------------------------------------------------------
@router.get("/new", response_model=ResponseMessage[List[NewProductOut]])
async def new_products(db: AsyncSession = Depends(get_db)):
    return await list_new_products(db)


# -----------------------------------------------------------
# GET PRODUCT BY ID (public)
# -----------------------------------------------------------
@router.get("/{product_id}", response_model=ResponseMessage[ProductDetailOut])
async def get_product_by_id(product_id: int, db: AsyncSession = Depends(get_db)):
    return await get_product(db, product_id)


# -----------------------------------------------------------
# UPDATE PRODUCT
# -----------------------------------------------------------
@router.put("/{product_id}", response_model=ResponseMessage[ProductOut])
@require_role(["admin"])
async def update_product_route(
    product_id: int,
    data: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await update_product(db, product_id, data, _user)


# -----------------------------------------------------------
# DELETE PRODUCT
# -----------------------------------------------------------
@router.delete("/{product_id}", response_model=MessageResponse)
@require_role(["admin"])
async def delete_product_route(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await delete_product(db, product_id, _user)
