from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supermart.app.core.database import Base
from supermart.app.services.bill_engine import DiscountKind, PaymentMethod


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [m.value for m in enum_cls]


class BillStatus(str, enum.Enum):
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class Bill(Base):
    """A completed sale. Money fields are stored exactly as computed."""

    __tablename__ = "bills"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    bill_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    customer_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_gst_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)
    total_discount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    total_tax: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    loyalty_discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    round_off: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    grand_total: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)
    cash_tendered: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    change_due: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )

    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, values_callable=_enum_values), nullable=False
    )
    # Gateway payment id for card/UPI collections
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[BillStatus] = mapped_column(
        Enum(BillStatus), nullable=False, default=BillStatus.COMPLETED
    )
    cashier_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    shift_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("shifts.id"), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    items: Mapped[list[BillItem]] = relationship(
        back_populates="bill", cascade="all, delete-orphan"
    )
    payments: Mapped[list[BillPayment]] = relationship(
        back_populates="bill", cascade="all, delete-orphan"
    )
    cashier = relationship("User")

    __table_args__ = (
        CheckConstraint("grand_total >= 0", name="ck_bill_grand_total_non_negative"),
        Index("ix_bills_created_at", "created_at"),
        Index("ix_bills_customer_phone", "customer_phone"),
        Index("ix_bills_cashier", "cashier_id"),
        Index("ix_bills_status", "status"),
    )


class BillItem(Base):
    """One bill line with a snapshot of the product and discount at sale time."""

    __tablename__ = "bill_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    bill_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("bills.id"), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("products.id"), nullable=False)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("product_variants.id"), nullable=True
    )
    product_code: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    variant_size: Mapped[str | None] = mapped_column(String(50), nullable=True)
    variant_sku: Mapped[str | None] = mapped_column(String(50), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(precision=7, scale=4), nullable=False)

    discount_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("discounts.id"), nullable=True
    )
    discount_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    discount_kind: Mapped[DiscountKind | None] = mapped_column(
        Enum(DiscountKind, values_callable=_enum_values), nullable=True
    )
    discount_value: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=4), nullable=True
    )

    base_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    discounted_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)

    bill: Mapped[Bill] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_bill_item_quantity_positive"),
        Index("ix_bill_items_bill", "bill_id"),
        Index("ix_bill_items_product", "product_id"),
    )


class BillPayment(Base):
    """The portion of the grand total kept per payment instrument."""

    __tablename__ = "bill_payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    bill_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("bills.id"), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, values_callable=_enum_values), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)

    bill: Mapped[Bill] = relationship(back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_bill_payment_amount_non_negative"),
        Index("ix_bill_payments_bill", "bill_id"),
        Index("ix_bill_payments_method", "method"),
    )
