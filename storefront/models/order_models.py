# storefront/models/order_models.py
import enum
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, ForeignKey, Numeric, DateTime, Boolean, Enum, Index,
    JSON, Text, CheckConstraint
)
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.core.db import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_code = Column(String, unique=True, nullable=False, index=True)

    # Foreign Keys
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    payment_method_id = Column(Integer, ForeignKey("payment_methods.id", ondelete="SET NULL"), nullable=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="SET NULL"), nullable=True)

    # Snapshots taken at checkout
    shipping_address = Column(JSON, nullable=True)
    voucher_code = Column(String(50), nullable=True)

    # Financial fields
    subtotal = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    shipping_fee = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    discount_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    final_total = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    # Workflow
    status = Column(Enum(OrderStatus, name="order_status"), default=OrderStatus.PENDING, nullable=False, index=True)
    status_history = Column(MutableList.as_mutable(JSON), default=list)  # [{"date":..., "status":..., "note":..., "actor":...}]
    cancel_reason = Column(Text, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )
    user = relationship("User", lazy="selectin")
    payment_method = relationship("PaymentMethod", lazy="selectin")

    __table_args__ = (
        CheckConstraint("final_total >= 0", name="check_order_final_total_non_negative"),
        Index("ix_order_user_status", "user_id", "status"),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, code='{self.order_code}', status='{self.status}')>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True, index=True)
    product_id = Column(Integer, nullable=True)
    product_name = Column(String(255), nullable=True)
    color = Column(String(50), nullable=True)
    size = Column(String(20), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    line_total = Column(Numeric(14, 2), nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_order_item_quantity_positive"),
    )
