from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from restaurant_pos.models import Ingredient, InventoryLog, MovementType, Product


def record_movement(
    db: Session,
    *,
    movement_type: MovementType,
    quantity: Decimal | int,
    ingredient_id: int | None = None,
    product_id: int | None = None,
    recipe_id: int | None = None,
    order_id: int | None = None,
    notes: str | None = None,
) -> None:
    if ingredient_id is None and product_id is None:
        raise ValueError('An inventory movement needs an ingredient or a product')
    db.add(
        InventoryLog(
            ingredient_id=ingredient_id,
            product_id=product_id,
            recipe_id=recipe_id,
            order_id=order_id,
            movement_type=movement_type,
            quantity=Decimal(quantity),
            notes=notes,
        )
    )


def list_movements(
    db: Session,
    *,
    limit: int = 50,
    ingredient_id: int | None = None,
    product_id: int | None = None,
) -> list[dict]:
    query = (
        select(InventoryLog, Ingredient.name.label('ingredient_name'), Product.name.label('product_name'))
        .outerjoin(Ingredient, Ingredient.id == InventoryLog.ingredient_id)
        .outerjoin(Product, Product.id == InventoryLog.product_id)
        .order_by(InventoryLog.id.desc())
        .limit(limit)
    )
    if ingredient_id is not None:
        query = query.where(InventoryLog.ingredient_id == ingredient_id)
    if product_id is not None:
        query = query.where(InventoryLog.product_id == product_id)

    return [
        {
            'id': log.id,
            'movement_type': log.movement_type.value,
            'quantity': log.quantity,
            'ingredient_id': log.ingredient_id,
            'ingredient_name': ingredient_name,
            'product_id': log.product_id,
            'product_name': product_name,
            'recipe_id': log.recipe_id,
            'order_id': log.order_id,
            'notes': log.notes,
            'created_at': log.created_at,
        }
        for log, ingredient_name, product_name in db.execute(query).all()
    ]
