# storefront/services/address_service.py
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.models.address_models import Address
from storefront.schemas.address_schemas import AddressCreate, AddressUpdate, AddressOut
from storefront.services.shipping_service import get_user_address, resolve_zone


async def _clear_default(db: AsyncSession, user_id: int, keep_id: int | None = None):
    stmt = update(Address).where(Address.user_id == user_id, Address.is_default == True)
    if keep_id is not None:
        stmt = stmt.where(Address.id != keep_id)
    await db.execute(stmt.values(is_default=False).execution_options(synchronize_session=False))


# ---------------------------------------------------
# CREATE ADDRESS
# ---------------------------------------------------
async def create_address(db: AsyncSession, data: AddressCreate, current_user) -> dict:
    # Reject addresses we could never ship to
    resolve_zone(data.province)

    if data.is_default:
        await _clear_default(db, current_user.id)

    address = Address(**data.model_dump(), user_id=current_user.id)
    db.add(address)
    await db.commit()
    await db.refresh(address)
    return {"message": "Address created successfully", "data": AddressOut.model_validate(address)}


# ---------------------------------------------------
# LIST MY ADDRESSES
# ---------------------------------------------------
async def list_addresses(db: AsyncSession, current_user) -> dict:
    result = await db.execute(
        select(Address)
        .where(Address.user_id == current_user.id)
        .order_by(Address.is_default.desc(), Address.id)
    )
    return {
        "message": "Addresses fetched successfully",
        "data": [AddressOut.model_validate(a) for a in result.scalars().all()],
    }


async def get_address(db: AsyncSession, address_id: int, current_user) -> dict:
    address = await get_user_address(db, address_id, current_user)
    return {"message": "Address fetched successfully", "data": AddressOut.model_validate(address)}


# ---------------------------------------------------
# UPDATE ADDRESS
# ---------------------------------------------------
async def update_address(db: AsyncSession, address_id: int, data: AddressUpdate, current_user) -> dict:
    address = await get_user_address(db, address_id, current_user)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("province"):
        resolve_zone(changes["province"])
    if changes.get("is_default"):
        await _clear_default(db, current_user.id, keep_id=address.id)

    for key, value in changes.items():
        setattr(address, key, value)

    await db.commit()
    await db.refresh(address)
    return {"message": "Address updated successfully", "data": AddressOut.model_validate(address)}


# ---------------------------------------------------
# DELETE ADDRESS
# ---------------------------------------------------
async def delete_address(db: AsyncSession, address_id: int, current_user) -> dict:
    address = await get_user_address(db, address_id, current_user)
    await db.delete(address)
    await db.commit()
    return {"message": "Address deleted successfully"}
