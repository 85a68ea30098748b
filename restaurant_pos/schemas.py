from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class OrderItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


class CheckoutRequest(BaseModel):
    items: list[OrderItemRequest] = Field(default_factory=list)


class OpenCashRequest(BaseModel):
    opening_balance: Decimal = Field(default=Decimal('0'), ge=0)


class CloseCashRequest(BaseModel):
    closing_balance: Decimal = Field(default=Decimal('0'), ge=0)


class IngredientCreate(BaseModel):
    name: str
    unit: str = 'kg'
    description: str | None = None
    current_quantity: Decimal = Decimal('0')
    min_quantity: Decimal = Decimal('0')
    cost_per_unit: Decimal = Decimal('0')


class IngredientLevelsUpdate(BaseModel):
    current_quantity: Decimal | None = None
    min_quantity: Decimal | None = None


class RecipeItemPayload(BaseModel):
    ingredient_id: int | None = None
    quantity: Decimal = Decimal('0')


class RecipeCreate(BaseModel):
    name: str
    description: str | None = None
    price: Decimal = Decimal('0')
    items: list[RecipeItemPayload] = Field(default_factory=list)


class PrepareRequest(BaseModel):
    quantity: int = 1


class ProductCreate(BaseModel):
    name: str
    price: Decimal
    category_id: int | None = None
    recipe_id: int | None = None
    current_stock: int = 0
    min_stock: int | None = None


class ProductUpdate(BaseModel):
    name: str | None = None
    price: Decimal | None = None
    category_id: int | None = None
    recipe_id: int | None = None
    current_stock: int | None = None
    min_stock: int | None = None
    is_active: bool | None = None


class CategoryCreate(BaseModel):
    name: str
