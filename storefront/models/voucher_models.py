# storefront/models/voucher_models.py
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey,
    CheckConstraint, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from storefront.core.db import Base
from storefront.core.config import DEFAULT_MAX_DISCOUNT


class Voucher(Base):
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    discount_percent = Column(Numeric(5, 2), nullable=False)
    minimum_order_value = Column(Numeric(14, 2), nullable=False, default=0)
    maximum_order_value = Column(Numeric(14, 2), nullable=True)  # NULL = unbounded
    maximum_discount_amount = Column(Numeric(14, 2), nullable=False, default=DEFAULT_MAX_DISCOUNT)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    usage_limit = Column(Integer, default=1, nullable=False)  # uses allowed per user
    is_one_time_per_user = Column(Boolean, default=True, nullable=False)
    used_count = Column(Integer, default=0, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    usages = relationship("VoucherUsage", back_populates="voucher", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("discount_percent >= 0 AND discount_percent <= 100", name="check_voucher_percent_range"),
        CheckConstraint("minimum_order_value >= 0", name="check_voucher_min_non_negative"),
        CheckConstraint("maximum_discount_amount >= 0", name="check_voucher_cap_non_negative"),
        CheckConstraint("usage_limit >= 1", name="check_voucher_usage_limit_positive"),
    )

    @property
    def per_user_limit(self) -> int:
        return 1 if self.is_one_time_per_user else self.usage_limit

    def __repr__(self):
        return f"<Voucher(id={self.id}, code='{self.code}', percent={self.discount_percent})>"


class VoucherUsage(Base):
    """One row per consumed use; the unique key serializes double-spends."""
    __tablename__ = "voucher_usages"

    id = Column(Integer, primary_key=True, index=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    use_number = Column(Integer, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    used_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    voucher = relationship("Voucher", back_populates="usages")

    __table_args__ = (
        UniqueConstraint("voucher_id", "user_id", "use_number", name="uq_voucher_usage_user_number"),
    )
