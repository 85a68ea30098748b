from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from restaurant_pos.config import settings
from restaurant_pos.errors import InsufficientIngredientError, NotFoundError
from restaurant_pos.models import Ingredient, MovementType, Product, Recipe, RecipeItem
from restaurant_pos.services.inventory_log_service import record_movement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecipeItemInput:
    ingredient_id: int | None
    quantity: Decimal


@dataclass
class PreparationResult:
    recipe_id: int
    recipe_name: str
    multiplier: int
    consumed: list[dict] = field(default_factory=list)
    product_id: int | None = None
    product_name: str | None = None
    product_stock: int | None = None


def _get_recipe(db: Session, recipe_id: int) -> Recipe:
    recipe = db.execute(select(Recipe).where(Recipe.id == recipe_id)).scalar_one_or_none()
    if recipe is None:
        raise NotFoundError('Recipe not found')
    return recipe


def _to_quantity(value) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f'Invalid quantity: {value!r}') from exc


def list_recipes(db: Session, *, active_only: bool = False) -> list[dict]:
    query = select(Recipe).order_by(Recipe.name.asc())
    if active_only:
        query = query.where(Recipe.is_active.is_(True))
    return [
        {
            'id': row.id,
            'name': row.name,
            'description': row.description,
            'price': row.price,
            'is_active': row.is_active,
        }
        for row in db.execute(query).scalars().all()
    ]


def list_recipe_items(db: Session, *, recipe_id: int) -> list[dict]:
    rows = db.execute(
        select(RecipeItem, Ingredient)
        .join(Ingredient, Ingredient.id == RecipeItem.ingredient_id)
        .where(RecipeItem.recipe_id == recipe_id)
        .order_by(Ingredient.name.asc())
    ).all()
    return [
        {
            'ingredient_id': ingredient.id,
            'name': ingredient.name,
            'unit': ingredient.unit,
            'quantity': item.quantity,
            'current_quantity': ingredient.current_quantity,
        }
        for item, ingredient in rows
    ]


def get_recipe_detail(db: Session, *, recipe_id: int) -> dict:
    recipe = _get_recipe(db, recipe_id)
    product = _linked_product(db, recipe_id=recipe.id)
    return {
        'id': recipe.id,
        'name': recipe.name,
        'description': recipe.description,
        'price': recipe.price,
        'is_active': recipe.is_active,
        'product_id': product.id if product else None,
        'items': list_recipe_items(db, recipe_id=recipe.id),
    }


def create_recipe(
    db: Session,
    *,
    name: str,
    description: str | None = None,
    price: Decimal | int | float | str = Decimal('0.00'),
    items: list[RecipeItemInput],
) -> Recipe:
    clean_name = name.strip()
    if not clean_name:
        raise ValueError('Recipe name is required')
    if not items:
        raise ValueError('Add at least one ingredient')
    recipe_price = _to_quantity(price).quantize(Decimal('0.01'))
    if recipe_price < 0:
        raise ValueError('Price cannot be negative')

    usable = [item for item in items if item.ingredient_id]
    if not usable:
        raise ValueError('Add at least one ingredient')
    seen: set[int] = set()
    for item in usable:
        if item.ingredient_id in seen:
            raise ValueError('Each ingredient can only appear once in a recipe')
        seen.add(item.ingredient_id)
        if _to_quantity(item.quantity) <= 0:
            raise ValueError('Ingredient quantities must be greater than zero')

    existing_ids = set(db.execute(select(Ingredient.id).where(Ingredient.id.in_(seen))).scalars().all())
    missing = seen - existing_ids
    if missing:
        raise NotFoundError(f'Ingredients not found: {", ".join(str(i) for i in sorted(missing))}')

    recipe = Recipe(name=clean_name, description=(description or '').strip() or None, price=recipe_price, is_active=True)
    db.add(recipe)
    db.flush()
    db.add_all(
        [
            RecipeItem(recipe_id=recipe.id, ingredient_id=item.ingredient_id, quantity=_to_quantity(item.quantity))
            for item in usable
        ]
    )
    db.flush()
    logger.info('recipe %s created with %s ingredients', recipe.id, len(usable))
    return recipe


def set_recipe_active(db: Session, *, recipe_id: int, active: bool) -> Recipe:
    recipe = _get_recipe(db, recipe_id)
    recipe.is_active = active
    db.flush()
    return recipe


def toggle_recipe_active(db: Session, *, recipe_id: int) -> Recipe:
    recipe = _get_recipe(db, recipe_id)
    return set_recipe_active(db, recipe_id=recipe.id, active=not recipe.is_active)


def delete_recipe(db: Session, *, recipe_id: int) -> None:
    recipe = _get_recipe(db, recipe_id)
    db.delete(recipe)
    db.flush()


def _linked_product(db: Session, *, recipe_id: int, for_update: bool = False) -> Product | None:
    query = select(Product).where(Product.recipe_id == recipe_id).order_by(Product.id.asc()).limit(1)
    if for_update:
        query = query.with_for_update()
    return db.execute(query).scalars().first()


def prepare_recipe(
    db: Session,
    *,
    recipe_id: int,
    multiplier: int,
    require_product: bool | None = None,
) -> PreparationResult:
    """Turn ingredient stock into finished product stock for ``multiplier`` units of a recipe.

    All shortages are detected before anything is written. Each ingredient is then
    decremented with a conditional update, so a concurrent preparation that drained
    the same ingredient in the meantime makes this one fail instead of overdrawing.
    """
    if isinstance(multiplier, bool) or not isinstance(multiplier, int) or multiplier < 1:
        raise ValueError('Select a recipe and a valid quantity')
    require = settings.require_linked_product if require_product is None else require_product

    recipe = _get_recipe(db, recipe_id)
    if not recipe.is_active:
        raise ValueError(f'Recipe {recipe.name} is inactive')

    product = _linked_product(db, recipe_id=recipe.id, for_update=True)
    if product is None and require:
        raise ValueError('This recipe is not linked to any product. Check the product configuration.')

    rows = db.execute(
        select(RecipeItem, Ingredient)
        .join(Ingredient, Ingredient.id == RecipeItem.ingredient_id)
        .where(RecipeItem.recipe_id == recipe.id)
        .order_by(Ingredient.id.asc())
    ).all()
    if not rows:
        raise ValueError(f'Recipe {recipe.name} has no ingredients')

    requirements = []
    shortages = []
    for item, ingredient in rows:
        required = Decimal(item.quantity) * multiplier
        available = Decimal(ingredient.current_quantity)
        requirements.append((ingredient, required))
        if available < required:
            shortages.append(
                {
                    'ingredient_id': ingredient.id,
                    'name': ingredient.name,
                    'unit': ingredient.unit,
                    'required': required,
                    'available': available,
                }
            )
    if shortages:
        raise InsufficientIngredientError(shortages)

    result = PreparationResult(recipe_id=recipe.id, recipe_name=recipe.name, multiplier=multiplier)
    for ingredient, required in requirements:
        updated = db.execute(
            update(Ingredient)
            .where(Ingredient.id == ingredient.id, Ingredient.current_quantity >= required)
            .values(current_quantity=Ingredient.current_quantity - required)
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            db.refresh(ingredient)
            raise InsufficientIngredientError(
                [
                    {
                        'ingredient_id': ingredient.id,
                        'name': ingredient.name,
                        'unit': ingredient.unit,
                        'required': required,
                        'available': Decimal(ingredient.current_quantity),
                    }
                ]
            )
        db.refresh(ingredient)
        record_movement(
            db,
            movement_type=MovementType.RECIPE_USED,
            quantity=required,
            ingredient_id=ingredient.id,
            recipe_id=recipe.id,
            notes=f'Order prepared ({multiplier} unit(s))',
        )
        result.consumed.append(
            {
                'ingredient_id': ingredient.id,
                'name': ingredient.name,
                'unit': ingredient.unit,
                'used': required,
                'remaining': Decimal(ingredient.current_quantity),
            }
        )

    if product is not None:
        product.current_stock = (product.current_stock or 0) + multiplier
        record_movement(
            db,
            movement_type=MovementType.RECIPE_PRODUCED,
            quantity=multiplier,
            product_id=product.id,
            recipe_id=recipe.id,
            notes=f'Produced {multiplier} {product.name} from recipe',
        )
        result.product_id = product.id
        result.product_name = product.name
        result.product_stock = product.current_stock

    db.flush()
    logger.info(
        'recipe %s prepared x%s; product %s stock now %s',
        recipe.id,
        multiplier,
        result.product_id,
        result.product_stock,
    )
    return result
