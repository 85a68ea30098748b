"""Order placement: persist the order, update the register totals and consume stock.

Every step runs inside the caller's transaction. The router commits once the
whole sequence succeeded and rolls back otherwise, so a failure part way
through leaves neither an orphan order nor a partial stock decrement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from restaurant_pos.config import settings
from restaurant_pos.errors import EmptyOrderError, NotFoundError, OutOfStockError
from restaurant_pos.models import CashSession, MovementType, Order, Product
from restaurant_pos.services.cash_session_service import require_open_session
from restaurant_pos.services.inventory_log_service import record_movement
from restaurant_pos.services.order_builder import OrderBuilder
from restaurant_pos.services.receipt_service import Receipt, build_receipt

logger = logging.getLogger(__name__)


@dataclass
class PlacedOrder:
    order: Order
    session: CashSession
    receipt: Receipt
    stock_after: dict[int, int]


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _lock_products(db: Session, product_ids: list[int]) -> dict[int, Product]:
    rows = db.execute(
        select(Product)
        .where(Product.id.in_(product_ids))
        .order_by(Product.id.asc())
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().all()
    by_id = {row.id: row for row in rows}
    missing = [product_id for product_id in product_ids if product_id not in by_id]
    if missing:
        raise NotFoundError(f'Products not found: {", ".join(str(product_id) for product_id in missing)}')
    return by_id


def _check_locked_stock(builder: OrderBuilder, products: dict[int, Product]) -> None:
    # Stock read while building the order may be stale once the rows are locked.
    for line in builder.lines:
        product = products[line.product_id]
        if not product.is_active:
            raise OutOfStockError(f'{product.name} is not available')
        if product.recipe_id is not None:
            continue
        if product.current_stock <= 0:
            raise OutOfStockError(f'{product.name} is out of stock')
        if line.quantity > product.current_stock:
            raise OutOfStockError(f'Only {product.current_stock} of {product.name} left in stock')


def place_order(db: Session, *, builder: OrderBuilder, clamp_stock: bool | None = None) -> PlacedOrder:
    if builder.is_empty:
        raise EmptyOrderError('Order has no items')
    clamp = settings.clamp_stock_at_zero if clamp_stock is None else clamp_stock

    session = require_open_session(db, for_update=True)
    products = _lock_products(db, [line.product_id for line in builder.lines])
    _check_locked_stock(builder, products)

    total = builder.total
    order = Order(
        cash_session_id=session.id,
        items=builder.snapshot(),
        total=total,
        created_at=_now(),
    )
    db.add(order)
    db.flush()

    session.total_orders += 1
    session.total_sales = (Decimal(session.total_sales) + total).quantize(Decimal('0.01'))

    stock_after: dict[int, int] = {}
    for line in builder.lines:
        product = products[line.product_id]
        remaining = product.current_stock - line.quantity
        if clamp and remaining < 0:
            remaining = 0
        product.current_stock = remaining
        stock_after[product.id] = remaining
        record_movement(
            db,
            movement_type=MovementType.SALE,
            quantity=line.quantity,
            product_id=product.id,
            order_id=order.id,
            notes=f'Order #{order.id}',
        )

    db.flush()
    receipt = build_receipt(builder.lines, total=total, issued_at=order.created_at, order_id=order.id)
    logger.info('order %s placed in cash session %s: %s items, total %s', order.id, session.id, builder.item_count, total)
    return PlacedOrder(order=order, session=session, receipt=receipt, stock_after=stock_after)


def get_order(db: Session, *, order_id: int) -> Order:
    order = db.execute(select(Order).where(Order.id == order_id)).scalar_one_or_none()
    if order is None:
        raise NotFoundError('Order not found')
    return order
