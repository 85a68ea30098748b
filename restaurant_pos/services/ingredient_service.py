from __future__ import annotations

from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from restaurant_pos.errors import NotFoundError
from restaurant_pos.models import Ingredient, MovementType, Recipe
from restaurant_pos.services.inventory_log_service import record_movement


def _decimal(value, label: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f'Invalid {label}') from exc
    if amount < 0:
        raise ValueError(f'{label.capitalize()} cannot be negative')
    return amount


def _get_ingredient(db: Session, ingredient_id: int) -> Ingredient:
    ingredient = db.execute(select(Ingredient).where(Ingredient.id == ingredient_id)).scalar_one_or_none()
    if ingredient is None:
        raise NotFoundError('Ingredient not found')
    return ingredient


def _row(ingredient: Ingredient) -> dict:
    return {
        'id': ingredient.id,
        'name': ingredient.name,
        'description': ingredient.description,
        'unit': ingredient.unit,
        'current_quantity': ingredient.current_quantity,
        'min_quantity': ingredient.min_quantity,
        'cost_per_unit': ingredient.cost_per_unit,
        'is_low_stock': ingredient.current_quantity <= ingredient.min_quantity,
    }


def list_ingredients(db: Session, *, search: str | None = None) -> list[dict]:
    query = select(Ingredient).order_by(Ingredient.name.asc())
    term = (search or '').strip().lower()
    if term:
        query = query.where(func.lower(Ingredient.name).contains(term, autoescape=True))
    return [_row(row) for row in db.execute(query).scalars().all()]


def create_ingredient(
    db: Session,
    *,
    name: str,
    unit: str = 'kg',
    description: str | None = None,
    current_quantity=0,
    min_quantity=0,
    cost_per_unit=0,
) -> Ingredient:
    clean_name = name.strip()
    if not clean_name:
        raise ValueError('Ingredient name is required')
    clean_unit = unit.strip()
    if not clean_unit:
        raise ValueError('Unit is required')

    ingredient = Ingredient(
        name=clean_name,
        unit=clean_unit,
        description=(description or '').strip() or None,
        current_quantity=_decimal(current_quantity, 'current quantity'),
        min_quantity=_decimal(min_quantity, 'minimum quantity'),
        cost_per_unit=_decimal(cost_per_unit, 'cost per unit').quantize(Decimal('0.01')),
    )
    db.add(ingredient)
    db.flush()
    return ingredient


def update_ingredient_levels(
    db: Session,
    *,
    ingredient_id: int,
    current_quantity=None,
    min_quantity=None,
) -> Ingredient:
    ingredient = _get_ingredient(db, ingredient_id)
    if current_quantity is not None:
        new_quantity = _decimal(current_quantity, 'current quantity')
        delta = new_quantity - Decimal(ingredient.current_quantity)
        ingredient.current_quantity = new_quantity
        if delta:
            record_movement(
                db,
                movement_type=MovementType.ADJUSTMENT,
                quantity=delta,
                ingredient_id=ingredient.id,
                notes='Manual stock adjustment',
            )
    if min_quantity is not None:
        ingredient.min_quantity = _decimal(min_quantity, 'minimum quantity')
    db.flush()
    return ingredient


def delete_ingredient(db: Session, *, ingredient_id: int) -> None:
    ingredient = _get_ingredient(db, ingredient_id)
    db.delete(ingredient)
    db.flush()


def inventory_dashboard(db: Session) -> dict:
    ingredients = [_row(row) for row in db.execute(select(Ingredient).order_by(Ingredient.name.asc())).scalars().all()]
    low_stock = [row for row in ingredients if row['is_low_stock']]
    total_value = sum(
        (Decimal(row['current_quantity']) * Decimal(row['cost_per_unit']) for row in ingredients),
        Decimal('0.00'),
    ).quantize(Decimal('0.01'))
    active_recipes = db.execute(select(func.count(Recipe.id)).where(Recipe.is_active.is_(True))).scalar_one()
    return {
        'total_ingredients': len(ingredients),
        'low_stock_count': len(low_stock),
        'low_stock': low_stock,
        'total_inventory_value': total_value,
        'active_recipes': active_recipes,
    }
