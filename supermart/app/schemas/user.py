from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, field_validator

from supermart.app.models.user import RoleEnum


class Token(BaseModel):
    access_token: str
    token_type: str
    employee_id: str
    full_name: str
    role: RoleEnum
    # Shift already open for this cashier, if any
    active_shift_id: UUID | None = None


class UserCreate(BaseModel):
    username: str
    full_name: str
    employee_id: str
    password: str
    role: RoleEnum = RoleEnum.CASHIER
    phone: str | None = None

    @field_validator("username", "full_name", "employee_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v


class UserUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    role: RoleEnum | None = None
    is_active: bool | None = None


class UserOut(BaseModel):
    id: UUID
    username: str
    full_name: str
    employee_id: str
    phone: str | None
    role: RoleEnum
    is_active: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True
