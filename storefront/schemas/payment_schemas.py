from pydantic import BaseModel
from typing import Optional

from storefront.models.payment_models import PaymentMethodEnum


class PaymentMethodCreate(BaseModel):
    method: PaymentMethodEnum
    description: Optional[str] = None
    is_active: bool = True


class PaymentMethodUpdate(BaseModel):
    description: Optional[str] = None
    is_active: Optional[bool] = None


class PaymentMethodOut(BaseModel):
    id: int
    method: PaymentMethodEnum
    description: Optional[str] = None
    is_active: bool

    model_config = {"from_attributes": True}
