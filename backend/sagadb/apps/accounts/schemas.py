# backend/sagadb/apps/accounts/schemas.py

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .models import AccountRole

MIN_PASSWORD_LENGTH = 6


# ---------------------------------------------------------------------------
# CLINIC
# ---------------------------------------------------------------------------


class ClinicBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    organization: Optional[str] = Field(default=None, max_length=255)


class ClinicCreate(ClinicBase):
    pass


class ClinicUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    organization: Optional[str] = Field(default=None, max_length=255)


class ClinicRead(ClinicBase):
    id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# USER
# ---------------------------------------------------------------------------


class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=255)
    role: AccountRole = AccountRole.TRAINEE
    clinic_id: Optional[str] = None


class UserCreate(UserBase):
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    role: Optional[AccountRole] = None
    clinic_id: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=MIN_PASSWORD_LENGTH)


class UserRead(BaseModel):
    id: str
    email: str
    name: str
    role: AccountRole
    clinic_id: Optional[str] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: str
    name: str
    email: str
    role: AccountRole

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# AUTH
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead
