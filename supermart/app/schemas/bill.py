from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from supermart.app.models.bill import BillStatus
from supermart.app.services.bill_engine import DiscountKind, PaymentMethod


# ─── Request ──────────────────────────────────────────────────────────────────


class BillItemRequest(BaseModel):
    product_id: UUID
    size: str | None = None
    # At least 0.01; stored with four decimals
    quantity: Decimal = Field(ge=Decimal("0.01"), decimal_places=4)
    # Explicit catalogue discount; when omitted the best applicable one is used
    discount_id: UUID | None = None


class CustomerInfo(BaseModel):
    name: str | None = None
    phone: str | None = None
    address: str | None = None
    gst_number: str | None = None

    @field_validator("phone")
    @classmethod
    def strip_phone(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class PaymentRequest(BaseModel):
    method: PaymentMethod = PaymentMethod.CASH
    cash_tendered: Decimal | None = None
    card_amount: Decimal | None = None
    upi_amount: Decimal | None = None
    reference: str | None = None


class BillPreviewRequest(BaseModel):
    items: list[BillItemRequest]
    customer_phone: str | None = None


class BillCreateRequest(BaseModel):
    items: list[BillItemRequest]
    customer: CustomerInfo | None = None
    payment: PaymentRequest = PaymentRequest()
    notes: str | None = None


# ─── Response ─────────────────────────────────────────────────────────────────


class BillLineOut(BaseModel):
    product_id: UUID
    product_code: str
    product_name: str
    variant_size: str | None = None
    variant_sku: str | None = None
    quantity: Decimal
    rate: Decimal
    tax_rate: Decimal
    discount_id: UUID | None = None
    discount_name: str | None = None
    discount_kind: DiscountKind | None = None
    discount_value: Decimal | None = None
    base_amount: Decimal
    discount_amount: Decimal
    discounted_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    class Config:
        from_attributes = True


class LoyaltyStatusOut(BaseModel):
    phone: str
    purchase_count: int
    is_eligible: bool
    purchases_remaining: int


class BillPreviewOut(BaseModel):
    items: list[BillLineOut]
    subtotal: Decimal
    total_discount: Decimal
    total_tax: Decimal
    loyalty_discount_amount: Decimal
    round_off: Decimal
    grand_total: Decimal
    loyalty: LoyaltyStatusOut | None = None


class BillPaymentOut(BaseModel):
    method: PaymentMethod
    amount: Decimal

    class Config:
        from_attributes = True


class BillOut(BaseModel):
    id: UUID
    bill_number: str
    customer_name: str | None
    customer_phone: str | None
    customer_address: str | None
    customer_gst_number: str | None
    items: list[BillLineOut]
    subtotal: Decimal
    total_discount: Decimal
    total_tax: Decimal
    loyalty_discount_amount: Decimal
    round_off: Decimal
    grand_total: Decimal
    cash_tendered: Decimal
    change_due: Decimal
    payment_method: PaymentMethod
    payment_reference: str | None
    payments: list[BillPaymentOut]
    status: BillStatus
    cashier_id: UUID
    shift_id: UUID | None
    notes: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class BillListOut(BaseModel):
    bills: list[BillOut]
    total: int
    total_pages: int
    current_page: int


class BillCancelRequest(BaseModel):
    reason: str | None = None
