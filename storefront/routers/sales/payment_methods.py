# storefront/routers/sales/payment_methods.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.db import get_db
from storefront.schemas.payment_schemas import PaymentMethodCreate, PaymentMethodOut, PaymentMethodUpdate
from storefront.schemas.response_schemas import ResponseMessage
from storefront.services.payment_service import (
    create_payment_method,
    list_payment_methods,
    update_payment_method,
)
from storefront.utils.check_roles import require_role
from storefront.utils.get_user import get_current_user

router = APIRouter(prefix="/payment-methods", tags=["Payment Methods"])


@router.get("", response_model=ResponseMessage[List[PaymentMethodOut]])
async def list_payment_methods_route(db: AsyncSession = Depends(get_db)):
    return await list_payment_methods(db)


@router.post("", response_model=ResponseMessage[PaymentMethodOut], status_code=status.HTTP_201_CREATED)
@require_role(["admin"])
async def create_payment_method_route(
    data: PaymentMethodCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await create_payment_method(db, data, _user)


@router.put("/{payment_method_id}", response_model=ResponseMessage[PaymentMethodOut])
@require_role(["admin"])
async def update_payment_method_route(
    payment_method_id: int,
    data: PaymentMethodUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await update_payment_method(db, payment_method_id, data, _user)
