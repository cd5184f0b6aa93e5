from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal

from storefront.models.order_models import OrderStatus


# =====================================================
# Input / Request Schemas
# =====================================================
class OrderItemIn(BaseModel):
    variant_id: int
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    items: List[OrderItemIn] = []
    address_id: Optional[int] = None
    payment_method_id: Optional[int] = None
    voucher_code: Optional[str] = None


class OrderTotalRequest(BaseModel):
    items: List[OrderItemIn] = []
    address_id: Optional[int] = None
    voucher_code: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


class OrderCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BulkStatusUpdate(BaseModel):
    order_ids: List[int] = Field(..., min_length=1)
    status: OrderStatus
    note: Optional[str] = None


# =====================================================
# Nested / Helper Schemas
# =====================================================
class StatusHistoryStep(BaseModel):
    date: str
    status: str
    note: Optional[str] = None
    actor: Optional[str] = None


class OrderItemOut(BaseModel):
    id: int
    variant_id: Optional[int] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    model_config = {"from_attributes": True}


class OrderTotalBreakdown(BaseModel):
    subtotal: Decimal
    shipping_fee: Decimal
    discount_amount: Decimal
    final_total: Decimal
    voucher_code: Optional[str] = None


class ShippingFeeOut(BaseModel):
    address_id: int
    province: str
    zone: str
    fee: Decimal


# =====================================================
# Main Order Response Schemas
# =====================================================
class OrderOut(BaseModel):
    id: int
    order_code: str
    user_id: int
    address_id: Optional[int] = None
    payment_method_id: Optional[int] = None
    shipping_address: Optional[Dict[str, Optional[str]]] = None
    voucher_code: Optional[str] = None
    status: OrderStatus
    subtotal: Decimal
    shipping_fee: Decimal
    discount_amount: Decimal
    final_total: Decimal
    cancel_reason: Optional[str] = None
    status_history: List[StatusHistoryStep] = []
    items: List[OrderItemOut] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderStats(BaseModel):
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    status_counts: Dict[str, int]


class TopProduct(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    total_quantity: int
    order_count: int
    revenue: Decimal


class TrendPoint(BaseModel):
    day: date
    order_count: int
    revenue: Decimal


class OrderTrends(BaseModel):
    start_date: date
    end_date: date
    total_in_period: int
    revenue_in_period: Decimal
    trends: List[TrendPoint]


class BulkFailure(BaseModel):
    order_id: int
    code: str
    detail: str


class BulkStatusResult(BaseModel):
    updated: List[int]
    failed: List[BulkFailure]


class CanReviewOut(BaseModel):
    product_id: int
    can_review: bool
