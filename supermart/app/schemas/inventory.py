from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, field_validator


class CategoryCreate(BaseModel):
    name: str
    description: str | None = None


class CategoryOut(BaseModel):
    id: UUID
    name: str
    description: str | None

    class Config:
        from_attributes = True


class VariantCreate(BaseModel):
    size: str
    sku: str
    price: Decimal
    stock: Decimal = Decimal("0")

    @field_validator("price", "stock")
    @classmethod
    def non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Value must be non-negative")
        return v


class VariantOut(BaseModel):
    id: UUID
    size: str
    sku: str
    price: Decimal
    stock: Decimal
    is_active: bool

    class Config:
        from_attributes = True


class ProductCreate(BaseModel):
    code: str
    name: str
    category_id: UUID
    description: str | None = None
    price: Decimal
    tax_rate: Decimal = Decimal("0")
    unit: str = "pcs"
    stock: Decimal = Decimal("0")
    min_stock: Decimal = Decimal("0")
    variants: list[VariantCreate] = []

    @field_validator("price", "tax_rate", "stock", "min_stock")
    @classmethod
    def non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Value must be non-negative")
        return v


class ProductUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    tax_rate: Decimal | None = None
    min_stock: Decimal | None = None
    is_active: bool | None = None

    @field_validator("price", "tax_rate", "min_stock")
    @classmethod
    def non_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("Value must be non-negative")
        return v


class ProductOut(BaseModel):
    id: UUID
    code: str
    name: str
    category_id: UUID
    description: str | None
    price: Decimal
    tax_rate: Decimal
    unit: str
    stock: Decimal
    min_stock: Decimal
    is_active: bool
    variants: list[VariantOut] = []

    class Config:
        from_attributes = True


class RestockRequest(BaseModel):
    quantity: Decimal
    size: str | None = None

    @field_validator("quantity")
    @classmethod
    def quantity_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Quantity must be greater than zero")
        return v


class StockLevelOut(BaseModel):
    product_id: UUID
    code: str
    name: str
    size: str | None = None
    stock: Decimal
    min_stock: Decimal
    status: str


class StockStatusOut(BaseModel):
    total_products: int
    in_stock: int
    low_stock: int
    out_of_stock: int
    low_stock_products: list[StockLevelOut]
    out_of_stock_products: list[StockLevelOut]
