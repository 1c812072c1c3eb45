from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator

from supermart.app.services.bill_engine import DiscountKind


class DiscountCreate(BaseModel):
    name: str
    kind: DiscountKind
    value: Decimal
    product_id: UUID | None = None
    min_quantity: Decimal = Decimal("0")
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    usage_limit: int | None = None

    @field_validator("value")
    @classmethod
    def value_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Discount value must be greater than zero")
        return v

    @model_validator(mode="after")
    def validate_discount(self) -> "DiscountCreate":
        if self.kind == DiscountKind.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class DiscountUpdate(BaseModel):
    name: str | None = None
    value: Decimal | None = None
    min_quantity: Decimal | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    is_active: bool | None = None
    usage_limit: int | None = None

    @field_validator("value")
    @classmethod
    def value_positive(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v <= 0:
            raise ValueError("Discount value must be greater than zero")
        return v


class DiscountOut(BaseModel):
    id: UUID
    name: str
    kind: DiscountKind
    value: Decimal
    product_id: UUID | None
    min_quantity: Decimal
    starts_at: datetime | None
    ends_at: datetime | None
    is_active: bool
    usage_count: int
    usage_limit: int | None

    class Config:
        from_attributes = True
