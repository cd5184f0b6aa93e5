from pydantic import BaseModel, Field, model_validator
from typing import Optional
from typing_extensions import Annotated
from datetime import datetime
from decimal import Decimal

from storefront.core.config import DEFAULT_MAX_DISCOUNT

NonNegativeDecimal = Annotated[Decimal, Field(ge=0, max_digits=14, decimal_places=2)]
Percent = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]

class VoucherBase(BaseModel):
    code: str = Field(..., min_length=3, max_length=50)
    discount_percent: Percent
    minimum_order_value: NonNegativeDecimal = Decimal("0")
    maximum_order_value: Optional[NonNegativeDecimal] = None
    maximum_discount_amount: NonNegativeDecimal = DEFAULT_MAX_DISCOUNT
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    usage_limit: int = Field(1, ge=1)
    is_one_time_per_user: bool = True

class VoucherCreate(VoucherBase):
    pass

class VoucherUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=3, max_length=50)
    discount_percent: Optional[Percent] = None
    minimum_order_value: Optional[NonNegativeDecimal] = None
    maximum_order_value: Optional[NonNegativeDecimal] = None
    maximum_discount_amount: Optional[NonNegativeDecimal] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    is_one_time_per_user: Optional[bool] = None

    @model_validator(mode="after")
    def no_null_for_required_fields(self):
        # Only the upper order bound may be cleared
        nulled = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None and name != "maximum_order_value"
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self

class VoucherOut(VoucherBase):
    id: int
    used_count: int
    is_deleted: bool

    class Config:
        from_attributes = True

class VoucherApply(BaseModel):
    code: str
    subtotal: NonNegativeDecimal

class VoucherApplyResult(BaseModel):
    code: str
    subtotal: Decimal
    discount_amount: Decimal
    remaining_uses: int

