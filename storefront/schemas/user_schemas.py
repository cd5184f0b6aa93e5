# storefront/schemas/user_schemas.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Literal
from datetime import datetime

class UserLogin(BaseModel):
    username: EmailStr
    password: str

class UserRegister(BaseModel):
    username: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str | None = None
    token_type: Literal["bearer"] = "bearer"

class UserOut(BaseModel):
    id: int
    username: EmailStr
    full_name: Optional[str] = None
    role: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserResponse(BaseModel):
    message: str
    data: Optional[UserOut] = None

class UsersListResponse(BaseModel):
    message: str
    data: List[UserOut]
