# storefront/services/pricing_service.py
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.exceptions import BusinessRuleError, NotFoundError, ValidationError
from storefront.models.address_models import Address
from storefront.models.product_models import ProductVariant
from storefront.models.voucher_models import Voucher
from storefront.schemas.order_schemas import OrderItemIn, OrderTotalBreakdown
from storefront.services.shipping_service import calculate_shipping_fee, get_user_address
from storefront.services.stock_service import merge_quantities
from storefront.services.voucher_service import evaluate_voucher
from storefront.utils.decimal_utils import to_decimal


class PricedOrder(NamedTuple):
    lines: List[dict]
    address: Address
    voucher: Optional[Voucher]
    voucher_uses: int
    totals: OrderTotalBreakdown


def calculate_subtotal(lines: List[dict]) -> Decimal:
    return to_decimal(sum((line["line_total"] for line in lines), Decimal("0")))


def compose_totals(subtotal, shipping_fee, discount_amount, voucher_code: str | None = None) -> OrderTotalBreakdown:
    """final_total = subtotal + shipping_fee - discount_amount, never negative."""
    subtotal = to_decimal(subtotal)
    shipping_fee = to_decimal(shipping_fee)
    discount_amount = min(to_decimal(discount_amount), subtotal)
    return OrderTotalBreakdown(
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        discount_amount=discount_amount,
        final_total=to_decimal(subtotal + shipping_fee - discount_amount),
        voucher_code=voucher_code,
    )


async def load_variants(db: AsyncSession, variant_ids) -> Dict[int, ProductVariant]:
    variant_ids = list(variant_ids)
    result = await db.execute(select(ProductVariant).where(ProductVariant.id.in_(variant_ids)))
    variants = {v.id: v for v in result.scalars().all()}
    for variant_id in variant_ids:
        if variant_id not in variants:
            raise NotFoundError(f"Product variant {variant_id} not found", code="VARIANT_NOT_FOUND")
        if not variants[variant_id].is_active:
            raise BusinessRuleError(f"Product variant {variant_id} is not available", code="OUT_OF_STOCK")
    return variants


def build_lines(requested: Dict[int, int], variants: Dict[int, ProductVariant]) -> List[dict]:
    lines = []
    for variant_id, quantity in requested.items():
        variant = variants[variant_id]
        unit_price = to_decimal(variant.price)
        lines.append({
            "variant_id": variant.id,
            "product_id": variant.product_id,
            "product_name": variant.product.name if variant.product else None,
            "color": variant.color,
            "size": variant.size,
            "quantity": quantity,
            "unit_price": unit_price,
            "line_total": to_decimal(unit_price * quantity),
        })
    return lines


async def calculate_order_total(
    db: AsyncSession,
    items: List[OrderItemIn],
    address_id: int | None,
    voucher_code: str | None,
    user,
) -> PricedOrder:
    """
    Price an order without touching stock or voucher usage.
    Unit prices always come from the variants, never from the client.
    """
    if not items:
        raise ValidationError("Order must contain at least one item", code="EMPTY_ORDER")

    requested = merge_quantities(items)
    variants = await load_variants(db, requested.keys())
    lines = build_lines(requested, variants)
    subtotal = calculate_subtotal(lines)

    address = await get_user_address(db, address_id, user)
    shipping_fee = calculate_shipping_fee(address.province)

    voucher, discount, uses = None, Decimal("0.00"), 0
    if voucher_code:
        voucher, discount, uses = await evaluate_voucher(db, voucher_code, subtotal, user)

    totals = compose_totals(subtotal, shipping_fee, discount, voucher.code if voucher else None)
    return PricedOrder(lines=lines, address=address, voucher=voucher, voucher_uses=uses, totals=totals)
