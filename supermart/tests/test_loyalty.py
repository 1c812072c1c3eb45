"""Tests for purchase counting and the loyalty discount on the qualifying purchase."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from supermart.app.core.config import settings
from supermart.app.models.bill import Bill, BillStatus
from supermart.app.models.product import Product
from supermart.app.models.user import User
from supermart.app.schemas.bill import (
    BillCreateRequest,
    BillItemRequest,
    CustomerInfo,
    PaymentRequest,
)
from supermart.app.services.bill_engine import PaymentMethod
from supermart.app.services.bills import create_bill
from supermart.app.services.loyalty import loyalty_status, purchase_count
from supermart.tests.conftest import auth

PHONE = "9000000001"


def _seed_bills(
    db: Session,
    cashier: User,
    count: int,
    phone: str = PHONE,
    status: BillStatus = BillStatus.COMPLETED,
) -> None:
    for n in range(count):
        db.add(
            Bill(
                bill_number=f"OLD{status.value[:1]}{n:04d}",
                customer_phone=phone,
                subtotal=Decimal("10"),
                grand_total=Decimal("10"),
                payment_method=PaymentMethod.CASH,
                status=status,
                cashier_id=cashier.id,
                created_at=datetime.now(timezone.utc),
            )
        )
    db.flush()


def _rice_bill(db: Session, cashier: User, product: Product, phone: str | None) -> Bill:
    request = BillCreateRequest(
        items=[BillItemRequest(product_id=product.id, quantity=Decimal("10"))],
        customer=CustomerInfo(name="Regular", phone=phone),
        payment=PaymentRequest(method=PaymentMethod.CASH, cash_tendered=Decimal("1000")),
    )
    return create_bill(db, request, cashier)


# ─── TestLoyaltyStatus ───────────────────────────────────────────────────────


class TestLoyaltyStatus:
    def test_new_customer(self, db: Session) -> None:
        status = loyalty_status(db, PHONE)
        assert status is not None
        assert status.purchase_count == 0
        assert status.is_eligible is False
        assert status.purchases_remaining == settings.LOYALTY_PURCHASE_THRESHOLD - 1

    def test_tenth_purchase_is_eligible(self, db: Session, cashier_user: User) -> None:
        _seed_bills(db, cashier_user, 9)
        status = loyalty_status(db, PHONE)
        assert status.purchase_count == 9
        assert status.is_eligible is True
        assert status.purchases_remaining == 0

    def test_ninth_purchase_is_not_eligible(self, db: Session, cashier_user: User) -> None:
        _seed_bills(db, cashier_user, 8)
        status = loyalty_status(db, PHONE)
        assert status.is_eligible is False
        assert status.purchases_remaining == 1

    def test_stays_eligible_after_threshold(self, db: Session, cashier_user: User) -> None:
        _seed_bills(db, cashier_user, 15)
        assert loyalty_status(db, PHONE).is_eligible is True

    def test_cancelled_bills_do_not_count(self, db: Session, cashier_user: User) -> None:
        _seed_bills(db, cashier_user, 9, status=BillStatus.CANCELLED)
        assert purchase_count(db, PHONE) == 0

    def test_other_phones_do_not_count(self, db: Session, cashier_user: User) -> None:
        _seed_bills(db, cashier_user, 9, phone="9000000002")
        assert purchase_count(db, PHONE) == 0

    @pytest.mark.parametrize("phone", [None, "", "   "])
    def test_blank_phone_has_no_status(self, db: Session, phone: str | None) -> None:
        assert loyalty_status(db, phone) is None

    def test_threshold_override(self, db: Session, cashier_user: User) -> None:
        _seed_bills(db, cashier_user, 2)
        assert loyalty_status(db, PHONE, threshold=3).is_eligible is True


# ─── TestLoyaltyDiscount ─────────────────────────────────────────────────────


class TestLoyaltyDiscount:
    def test_qualifying_purchase_gets_two_percent(
        self, db: Session, cashier_user: User, product_rice: Product
    ) -> None:
        """10 x 50 + 18% tax = 590; 2% of 590 is 11.8, taken as 12."""
        _seed_bills(db, cashier_user, 9)
        bill = _rice_bill(db, cashier_user, product_rice, PHONE)
        assert bill.loyalty_discount_amount == Decimal("12")
        assert bill.total_discount == Decimal("12")
        assert bill.grand_total == Decimal("578")

    def test_regular_purchase_has_no_loyalty_discount(
        self, db: Session, cashier_user: User, product_rice: Product
    ) -> None:
        _seed_bills(db, cashier_user, 3)
        bill = _rice_bill(db, cashier_user, product_rice, PHONE)
        assert bill.loyalty_discount_amount == Decimal("0")
        assert bill.grand_total == Decimal("590")

    def test_anonymous_purchase_has_no_loyalty_discount(
        self, db: Session, cashier_user: User, product_rice: Product
    ) -> None:
        bill = _rice_bill(db, cashier_user, product_rice, None)
        assert bill.loyalty_discount_amount == Decimal("0")

    def test_purchase_count_endpoint(
        self, db: Session, client: TestClient, cashier_token: str, cashier_user: User
    ) -> None:
        _seed_bills(db, cashier_user, 4)
        resp = client.get(
            f"/api/v1/bills/customer/{PHONE}/purchase-count", headers=auth(cashier_token)
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "phone": PHONE,
            "purchase_count": 4,
            "is_eligible": False,
            "purchases_remaining": 5,
        }

    def test_preview_reports_loyalty(
        self,
        db: Session,
        client: TestClient,
        cashier_token: str,
        cashier_user: User,
        product_rice: Product,
    ) -> None:
        _seed_bills(db, cashier_user, 9)
        resp = client.post(
            "/api/v1/bills/preview",
            json={
                "items": [{"product_id": str(product_rice.id), "quantity": "10"}],
                "customer_phone": PHONE,
            },
            headers=auth(cashier_token),
        )
        data = resp.json()
        assert data["loyalty"]["is_eligible"] is True
        assert Decimal(data["loyalty_discount_amount"]) == Decimal("12")
        assert Decimal(data["grand_total"]) == Decimal("578")
