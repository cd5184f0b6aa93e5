import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, func
from storefront.core.db import Base


class PaymentMethodEnum(str, enum.Enum):
    COD = "COD"
    BANK_TRANSFER = "BANK_TRANSFER"
    MOMO = "MOMO"
    VNPAY = "VNPAY"
    CREDIT_CARD = "CREDIT_CARD"


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, index=True)
    method = Column(Enum(PaymentMethodEnum, name="payment_method"), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<PaymentMethod(id={self.id}, method='{self.method}')>"
