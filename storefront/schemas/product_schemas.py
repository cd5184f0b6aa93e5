# storefront/schemas/product_schemas.py

from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal
from typing_extensions import Annotated

NonNegativeDecimal = Annotated[Decimal, Field(ge=0, max_digits=14, decimal_places=2)]


# --------------------------
# Product
# --------------------------
class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: NonNegativeDecimal = Decimal("0")
    is_active: bool = True


class ProductUpdate(BaseModel):
    """All fields optional for partial updates."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: Optional[NonNegativeDecimal] = None
    is_active: Optional[bool] = None


class ProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: Decimal
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NewProductOut(ProductOut):
    """Entry of the new-products listing; backfilled entries are not really new."""
    is_really_new: bool


# --------------------------
# Product Variant
# --------------------------
class VariantCreate(BaseModel):
    product_id: int
    color: Optional[str] = Field(None, max_length=50)
    size: Optional[str] = Field(None, max_length=20)
    price: NonNegativeDecimal
    stock: int = Field(0, ge=0)
    is_active: bool = True


class VariantUpdate(BaseModel):
    color: Optional[str] = Field(None, max_length=50)
    size: Optional[str] = Field(None, max_length=20)
    price: Optional[NonNegativeDecimal] = None
    stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class VariantOut(BaseModel):
    id: int
    product_id: int
    color: Optional[str] = None
    size: Optional[str] = None
    price: Decimal
    stock: int
    is_active: bool

    class Config:
        from_attributes = True


class StockUpdate(BaseModel):
    quantity_change: int = Field(..., gt=0)
    operation: Literal["increase", "decrease"]


class ProductDetailOut(ProductOut):
    variants: List[VariantOut] = []

    @field_validator("variants", mode="before")
    def active_variants_only(cls, value):
        return [v for v in (value or []) if getattr(v, "is_active", True)]
