"""In-memory order being assembled at the register before checkout."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from itertools import count

from sqlalchemy import select
from sqlalchemy.orm import Session

from restaurant_pos.errors import EmptyOrderError, NotFoundError, OutOfStockError
from restaurant_pos.models import Product

CENTS = Decimal('0.01')


@dataclass
class OrderLine:
    """A selected product with its quantity and unit price at the time it was added."""

    line_id: str
    product_id: int
    product_name: str
    price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return (self.price * self.quantity).quantize(CENTS)

    def snapshot(self) -> dict:
        return {
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'price': str(self.price),
        }


@dataclass
class OrderBuilder:
    lines: list[OrderLine] = field(default_factory=list)
    _stock_by_product: dict[int, int | None] = field(default_factory=dict, repr=False)
    _ids: count = field(default_factory=lambda: count(1), repr=False)

    @property
    def total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal('0.00')).quantize(CENTS)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def _find_by_product(self, product_id: int) -> OrderLine | None:
        return next((line for line in self.lines if line.product_id == product_id), None)

    def _find(self, line_id: str) -> OrderLine:
        line = next((line for line in self.lines if line.line_id == line_id), None)
        if line is None:
            raise NotFoundError(f'Order line {line_id} not found')
        return line

    def _check_stock(self, product_id: int, name: str, quantity: int) -> None:
        # Recipe products are produced on demand and carry no stock limit.
        available = self._stock_by_product.get(product_id)
        if available is None:
            return
        if available <= 0:
            raise OutOfStockError(f'{name} is out of stock')
        if quantity > available:
            raise OutOfStockError(f'Only {available} of {name} left in stock')

    def add_product(self, product: Product, quantity: int = 1) -> OrderLine:
        if quantity < 1:
            raise ValueError('Quantity must be at least 1')
        if not product.is_active:
            raise OutOfStockError(f'{product.name} is not available')

        self._stock_by_product[product.id] = None if product.recipe_id is not None else product.current_stock
        existing = self._find_by_product(product.id)
        new_quantity = quantity + (existing.quantity if existing else 0)
        self._check_stock(product.id, product.name, new_quantity)

        if existing:
            existing.quantity = new_quantity
            return existing

        line = OrderLine(
            line_id=f'{product.id}-{next(self._ids)}',
            product_id=product.id,
            product_name=product.name,
            price=Decimal(product.price).quantize(CENTS),
            quantity=quantity,
        )
        self.lines.append(line)
        return line

    def update_quantity(self, line_id: str, quantity: int) -> None:
        line = self._find(line_id)
        if quantity < 1:
            self.remove(line_id)
            return
        self._check_stock(line.product_id, line.product_name, quantity)
        line.quantity = quantity

    def remove(self, line_id: str) -> None:
        line = self._find(line_id)
        self.lines.remove(line)

    def clear(self) -> None:
        self.lines.clear()

    def snapshot(self) -> list[dict]:
        return [line.snapshot() for line in self.lines]


def build_order(db: Session, requested: list[tuple[int, int]]) -> OrderBuilder:
    """Feed requested ``(product_id, quantity)`` pairs through the builder's validation."""
    if not requested:
        raise EmptyOrderError('Order has no items')

    product_ids = {product_id for product_id, _ in requested}
    products = db.execute(select(Product).where(Product.id.in_(product_ids))).scalars().all()
    by_id = {product.id: product for product in products}

    builder = OrderBuilder()
    for product_id, quantity in requested:
        product = by_id.get(product_id)
        if product is None:
            raise NotFoundError(f'Product {product_id} not found')
        builder.add_product(product, quantity)
    return builder
