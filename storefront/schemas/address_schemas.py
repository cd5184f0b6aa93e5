from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime


class AddressBase(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=8, max_length=20)
    address_line: str = Field(..., min_length=5, max_length=255)
    ward: Optional[str] = None
    district: Optional[str] = None
    province: str = Field(..., min_length=2, max_length=20)
    is_default: bool = False

    @field_validator("province")
    def normalize_province(cls, value):
        return value.strip().lower()


class AddressCreate(AddressBase):
    pass


class AddressUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, min_length=8, max_length=20)
    address_line: Optional[str] = Field(None, min_length=5, max_length=255)
    ward: Optional[str] = None
    district: Optional[str] = None
    province: Optional[str] = Field(None, min_length=2, max_length=20)
    is_default: Optional[bool] = None

    @field_validator("province")
    def normalize_province(cls, value):
        return value.strip().lower() if value else value


class AddressOut(AddressBase):
    id: int
    user_id: int
    created_at: datetime

    model_config = {"from_attributes": True}
