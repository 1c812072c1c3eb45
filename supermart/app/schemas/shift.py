from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, field_validator

from supermart.app.models.shift import ShiftStatus


class ShiftStartRequest(BaseModel):
    opening_cash: Decimal = Decimal("0")

    @field_validator("opening_cash")
    @classmethod
    def cash_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Opening cash must be non-negative")
        return v


class ShiftEndRequest(BaseModel):
    closing_cash: Decimal
    notes: str | None = None

    @field_validator("closing_cash")
    @classmethod
    def cash_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Closing cash must be non-negative")
        return v


class ShiftForceEndRequest(BaseModel):
    closing_cash: Decimal | None = None
    notes: str | None = None

    @field_validator("closing_cash")
    @classmethod
    def cash_non_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("Closing cash must be non-negative")
        return v


class ShiftOut(BaseModel):
    id: UUID
    cashier_id: UUID
    cashier_name: str
    status: ShiftStatus
    started_at: datetime
    ended_at: datetime | None
    opening_cash: Decimal
    closing_cash: Decimal | None
    total_sales: Decimal
    total_bills: int
    cash_sales: Decimal
    expected_cash: Decimal | None
    discrepancy: Decimal | None
    notes: str | None


class ShiftListOut(BaseModel):
    shifts: list[ShiftOut]
    total: int
    total_pages: int
    current_page: int
