# storefront/routers/sales/addresses.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.db import get_db
from storefront.schemas.address_schemas import AddressCreate, AddressOut, AddressUpdate
from storefront.schemas.response_schemas import MessageResponse, ResponseMessage
from storefront.services.address_service import (
    create_address,
    delete_address,
    get_address,
    list_addresses,
    update_address,
)
from storefront.utils.get_user import get_current_user

router = APIRouter(prefix="/addresses", tags=["Addresses"])


@router.post("", response_model=ResponseMessage[AddressOut], status_code=status.HTTP_201_CREATED)
async def create_address_route(data: AddressCreate, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await create_address(db, data, _user)


@router.get("", response_model=ResponseMessage[List[AddressOut]])
async def list_addresses_route(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await list_addresses(db, _user)


@router.get("/{address_id}", response_model=ResponseMessage[AddressOut])
async def get_address_route(address_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await get_address(db, address_id, _user)


@router.put("/{address_id}", response_model=ResponseMessage[AddressOut])
async def update_address_route(
    address_id: int,
    data: AddressUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await update_address(db, address_id, data, _user)


@router.delete("/{address_id}", response_model=MessageResponse)
async def delete_address_route(address_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await delete_address(db, address_id, _user)
