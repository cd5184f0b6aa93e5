# storefront/models/product_models.py
from sqlalchemy import (
    Column, Integer, String, Text, Numeric, Boolean, CheckConstraint, Index,
    ForeignKey, DateTime, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from storefront.core.db import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), index=True, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    base_price = Column(Numeric(14, 2), default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    variants = relationship("ProductVariant", back_populates="product", lazy="selectin")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(base_price >= 0, name="check_product_price_non_negative"),
        Index("ix_product_name_category", "name", "category"),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}')>"


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    color = Column(String(50), nullable=True)
    size = Column(String(20), nullable=True)
    price = Column(Numeric(14, 2), nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    product = relationship("Product", back_populates="variants", lazy="joined")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(price >= 0, name="check_variant_price_non_negative"),
        CheckConstraint(stock >= 0, name="check_variant_stock_non_negative"),
        UniqueConstraint("product_id", "color", "size", name="uq_variant_product_color_size"),
    )

    def __repr__(self):
        return f"<ProductVariant(id={self.id}, product_id={self.product_id}, stock={self.stock})>"
