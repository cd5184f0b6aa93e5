# storefront/services/shipping_service.py
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.models.address_models import Address
from storefront.schemas.order_schemas import ShippingFeeOut

ZONE_FEES = {
    "metro": Decimal("30000"),
    "regional": Decimal("40000"),
    "remote": Decimal("50000"),
}

# Province code -> shipping zone
PROVINCE_ZONES = {
    # metro
    "hn": "metro", "hcm": "metro",
    # regional
    "hp": "regional", "dn": "regional", "ct": "regional", "bd": "regional",
    "dnai": "regional", "bn": "regional", "hy": "regional", "hd": "regional",
    "vp": "regional", "la": "regional", "brvt": "regional", "nd": "regional",
    "tb": "regional", "hnam": "regional", "nb": "regional", "th": "regional",
    "na": "regional", "hue": "regional", "qn": "regional", "kh": "regional",
    "ag": "regional", "tg": "regional", "vl": "regional", "bt": "regional",
    "ld": "regional", "qnam": "regional", "qngai": "regional", "bdinh": "regional",
    # remote
    "hg": "remote", "cb": "remote", "lc": "remote", "lcau": "remote",
    "db": "remote", "sl": "remote", "yb": "remote", "hb": "remote",
    "bk": "remote", "ls": "remote", "tq": "remote", "tn": "remote",
    "pt": "remote", "bg": "remote", "qninh": "remote", "ht": "remote",
    "qb": "remote", "qt": "remote", "kt": "remote", "gl": "remote",
    "dl": "remote", "dno": "remote", "py": "remote", "nt": "remote",
    "bth": "remote", "bp": "remote", "dt": "remote",
    "st": "remote", "tv": "remote", "bl": "remote", "cm": "remote",
    "kg": "remote", "hgi": "remote",
}


def resolve_zone(province: str | None) -> str:
    code = (province or "").strip().lower()
    zone = PROVINCE_ZONES.get(code)
    if zone is None:
        raise ValidationError(
            f"Cannot resolve a shipping zone for province '{province}'",
            code="UNRESOLVABLE_ADDRESS",
        )
    return zone


def calculate_shipping_fee(province: str | None) -> Decimal:
    """Flat fee for the province's zone."""
    return ZONE_FEES[resolve_zone(province)]


async def get_user_address(db: AsyncSession, address_id: int | None, user) -> Address:
    if address_id is None:
        raise ValidationError("Shipping address is required", code="MISSING_ADDRESS")
    result = await db.execute(
        select(Address).where(Address.id == address_id, Address.user_id == user.id)
    )
    address = result.scalars().first()
    if not address:
        raise NotFoundError("Address not found", code="ADDRESS_NOT_FOUND")
    return address


async def get_shipping_fee_for_address(db: AsyncSession, address_id: int, user) -> ShippingFeeOut:
    address = await get_user_address(db, address_id, user)
    zone = resolve_zone(address.province)
    return ShippingFeeOut(
        address_id=address.id,
        province=address.province,
        zone=zone,
        fee=ZONE_FEES[zone],
    )
