"""Tests for the product catalogue, variants, restocking and stock levels."""

from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from supermart.app.models.product import Category, Product
from supermart.app.services.inventory import (
    IN_STOCK,
    LOW_STOCK,
    OUT_OF_STOCK,
    decrement_stock,
    get_stock_status_summary,
    resolve_line,
    stock_level,
)
from supermart.tests.conftest import auth


# ─── TestResolveLine ─────────────────────────────────────────────────────────


class TestResolveLine:
    def test_plain_product(self, db: Session, product_rice: Product) -> None:
        line = resolve_line(db, product_rice.id, None, Decimal("3"))
        assert line.variant is None
        assert line.rate == Decimal("50")
        assert line.tax_rate == Decimal("18")

    def test_variant_price_overrides_product(self, db: Session, product_shirt: Product) -> None:
        line = resolve_line(db, product_shirt.id, "L", Decimal("1"))
        assert line.variant.sku == "SHIRT-01-L"
        assert line.rate == Decimal("450")
        assert line.tax_rate == Decimal("5")

    def test_unknown_size(self, db: Session, product_shirt: Product) -> None:
        with pytest.raises(ValueError, match="Variant not found: XL"):
            resolve_line(db, product_shirt.id, "XL", Decimal("1"))

    def test_inactive_variant(self, db: Session, product_shirt: Product) -> None:
        product_shirt.variants[0].is_active = False
        db.flush()
        size = product_shirt.variants[0].size
        with pytest.raises(ValueError, match="is not active"):
            resolve_line(db, product_shirt.id, size, Decimal("1"))

    def test_insufficient_stock_message(self, db: Session, product_rice: Product) -> None:
        with pytest.raises(ValueError, match="Available: 100, Required: 150"):
            resolve_line(db, product_rice.id, None, Decimal("150"))


# ─── TestStockLevels ─────────────────────────────────────────────────────────


class TestStockLevels:
    @pytest.mark.parametrize(
        ("stock", "expected"),
        [("20", IN_STOCK), ("10", LOW_STOCK), ("1", LOW_STOCK), ("0", OUT_OF_STOCK)],
    )
    def test_stock_level(self, stock: str, expected: str) -> None:
        assert stock_level(Decimal(stock), Decimal("10")) == expected

    def test_crossing_into_low_stock_is_logged(
        self, db: Session, product_rice: Product, caplog: pytest.LogCaptureFixture
    ) -> None:
        line = resolve_line(db, product_rice.id, None, Decimal("95"))
        with caplog.at_level("WARNING", logger="supermart.app.services.inventory"):
            level = decrement_stock(line, Decimal("95"))
        assert level == LOW_STOCK
        assert "low_stock" in caplog.text

    def test_summary(self, db: Session, product_rice: Product, product_shirt: Product) -> None:
        """Variants use the parent's min_stock of 3: M (10) in stock, L (2) low."""
        summary = get_stock_status_summary(db)
        assert summary["total_products"] == 2
        assert summary["in_stock"] == 2
        assert summary["low_stock"] == 1
        assert summary["out_of_stock"] == 0
        assert summary["low_stock_products"][0]["size"] == "L"


# ─── TestInventoryEndpoints ──────────────────────────────────────────────────


class TestInventoryEndpoints:
    def test_create_product_with_variants(
        self, client: TestClient, admin_token: str, category: Category
    ) -> None:
        resp = client.post(
            "/api/v1/inventory/products",
            json={
                "code": "JEANS-01",
                "name": "Denim Jeans",
                "category_id": str(category.id),
                "price": "900",
                "tax_rate": "12",
                "variants": [
                    {"size": "30", "sku": "JEANS-01-30", "price": "900", "stock": "5"},
                    {"size": "32", "sku": "JEANS-01-32", "price": "950", "stock": "5"},
                ],
            },
            headers=auth(admin_token),
        )
        assert resp.status_code == 201
        assert {v["size"] for v in resp.json()["variants"]} == {"30", "32"}

    def test_duplicate_code_rejected(
        self, client: TestClient, admin_token: str, product_rice: Product, category: Category
    ) -> None:
        resp = client.post(
            "/api/v1/inventory/products",
            json={"code": "RICE-5KG", "name": "Dup", "category_id": str(category.id), "price": "1"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 400

    def test_duplicate_variant_size_rejected(
        self, client: TestClient, admin_token: str, product_shirt: Product
    ) -> None:
        resp = client.post(
            f"/api/v1/inventory/products/{product_shirt.id}/variants",
            json={"size": "M", "sku": "SHIRT-01-M2", "price": "400"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 400

    def test_add_variant(
        self, client: TestClient, admin_token: str, product_shirt: Product
    ) -> None:
        resp = client.post(
            f"/api/v1/inventory/products/{product_shirt.id}/variants",
            json={"size": "XL", "sku": "SHIRT-01-XL", "price": "480", "stock": "4"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 201
        assert len(resp.json()["variants"]) == 3

    def test_restock_variant(
        self, client: TestClient, admin_token: str, product_shirt: Product
    ) -> None:
        resp = client.post(
            f"/api/v1/inventory/products/{product_shirt.id}/restock",
            json={"quantity": "8", "size": "L"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 200
        stock = {v["size"]: Decimal(v["stock"]) for v in resp.json()["variants"]}
        assert stock["L"] == Decimal("10")

    def test_cashier_cannot_restock(
        self, client: TestClient, cashier_token: str, product_rice: Product
    ) -> None:
        resp = client.post(
            f"/api/v1/inventory/products/{product_rice.id}/restock",
            json={"quantity": "8"},
            headers=auth(cashier_token),
        )
        assert resp.status_code == 403

    def test_update_and_search(
        self, client: TestClient, admin_token: str, product_rice: Product, product_shirt: Product
    ) -> None:
        resp = client.patch(
            f"/api/v1/inventory/products/{product_rice.id}",
            json={"price": "55"},
            headers=auth(admin_token),
        )
        assert Decimal(resp.json()["price"]) == Decimal("55")

        found = client.get("/api/v1/inventory/products?search=rice", headers=auth(admin_token))
        assert [p["code"] for p in found.json()] == ["RICE-5KG"]

    def test_missing_product(self, client: TestClient, admin_token: str) -> None:
        resp = client.get(
            "/api/v1/inventory/products/00000000-0000-0000-0000-000000000000",
            headers=auth(admin_token),
        )
        assert resp.status_code == 404

    def test_stock_status_endpoint(
        self, client: TestClient, cashier_token: str, product_rice: Product
    ) -> None:
        resp = client.get("/api/v1/inventory/stock-status", headers=auth(cashier_token))
        assert resp.status_code == 200
        assert resp.json()["in_stock"] == 1
