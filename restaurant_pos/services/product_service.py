from __future__ import annotations

from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_pos.config import settings
from restaurant_pos.errors import NotFoundError
from restaurant_pos.models import Category, MovementType, Product, Recipe
from restaurant_pos.services.inventory_log_service import record_movement

_UNSET = object()


def _given(value) -> bool:
    # None leaves a non-nullable field unchanged.
    return value is not _UNSET and value is not None


def _price(value) -> Decimal:
    try:
        amount = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError('Invalid price') from exc
    if amount < 0:
        raise ValueError('Price cannot be negative')
    return amount


def _stock(value, label: str) -> int:
    try:
        amount = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f'Invalid {label}') from exc
    if amount < 0:
        raise ValueError(f'{label.capitalize()} cannot be negative')
    return amount


def _ensure_category(db: Session, category_id: int | None) -> None:
    if category_id is None:
        return
    exists = db.execute(select(Category.id).where(Category.id == category_id)).scalar_one_or_none()
    if not exists:
        raise NotFoundError('Category not found')


def _ensure_recipe(db: Session, recipe_id: int | None) -> None:
    if recipe_id is None:
        return
    recipe = db.execute(select(Recipe).where(Recipe.id == recipe_id)).scalar_one_or_none()
    if recipe is None:
        raise NotFoundError('Recipe not found')
    if not recipe.is_active:
        raise ValueError(f'Recipe {recipe.name} is inactive and cannot be linked')


def _get_product(db: Session, product_id: int) -> Product:
    product = db.execute(select(Product).where(Product.id == product_id)).scalar_one_or_none()
    if product is None:
        raise NotFoundError('Product not found')
    return product


def list_products(db: Session) -> list[dict]:
    rows = db.execute(
        select(Product, Category.name, Recipe.name)
        .outerjoin(Category, Category.id == Product.category_id)
        .outerjoin(Recipe, Recipe.id == Product.recipe_id)
        .order_by(Product.name.asc())
    ).all()
    return [
        {
            'id': product.id,
            'name': product.name,
            'price': product.price,
            'category_id': product.category_id,
            'category_name': category_name,
            'recipe_id': product.recipe_id,
            'recipe_name': recipe_name,
            'current_stock': product.current_stock,
            'min_stock': product.min_stock,
            'is_active': product.is_active,
            'is_low_stock': product.current_stock <= product.min_stock,
        }
        for product, category_name, recipe_name in rows
    ]


def create_product(
    db: Session,
    *,
    name: str,
    price,
    category_id: int | None = None,
    recipe_id: int | None = None,
    current_stock=0,
    min_stock=None,
) -> Product:
    clean_name = name.strip()
    if not clean_name:
        raise ValueError('Product name is required')
    _ensure_category(db, category_id)
    _ensure_recipe(db, recipe_id)

    product = Product(
        name=clean_name,
        price=_price(price),
        category_id=category_id,
        recipe_id=recipe_id,
        current_stock=_stock(current_stock, 'current stock'),
        min_stock=_stock(settings.default_min_stock if min_stock is None else min_stock, 'minimum stock'),
        is_active=True,
    )
    db.add(product)
    db.flush()
    return product


def update_product(
    db: Session,
    *,
    product_id: int,
    name=_UNSET,
    price=_UNSET,
    category_id=_UNSET,
    recipe_id=_UNSET,
    current_stock=_UNSET,
    min_stock=_UNSET,
    is_active=_UNSET,
) -> Product:
    product = _get_product(db, product_id)
    if _given(name):
        clean_name = str(name).strip()
        if not clean_name:
            raise ValueError('Product name is required')
        product.name = clean_name
    if _given(price):
        product.price = _price(price)
    if category_id is not _UNSET:
        _ensure_category(db, category_id)
        product.category_id = category_id
    if recipe_id is not _UNSET:
        _ensure_recipe(db, recipe_id)
        product.recipe_id = recipe_id
    if _given(current_stock):
        new_stock = _stock(current_stock, 'current stock')
        delta = new_stock - product.current_stock
        product.current_stock = new_stock
        if delta:
            record_movement(
                db,
                movement_type=MovementType.ADJUSTMENT,
                quantity=delta,
                product_id=product.id,
                notes='Manual stock adjustment',
            )
    if _given(min_stock):
        product.min_stock = _stock(min_stock, 'minimum stock')
    if _given(is_active):
        product.is_active = bool(is_active)
    db.flush()
    return product


def delete_product(db: Session, *, product_id: int) -> None:
    product = _get_product(db, product_id)
    db.delete(product)
    db.flush()


def list_categories(db: Session) -> list[dict]:
    rows = db.execute(select(Category).order_by(Category.name.asc())).scalars().all()
    return [{'id': row.id, 'name': row.name} for row in rows]


def create_category(db: Session, *, name: str) -> Category:
    clean_name = name.strip()
    if not clean_name:
        raise ValueError('Category name is required')
    exists = db.execute(select(Category.id).where(Category.name == clean_name)).scalar_one_or_none()
    if exists:
        raise ValueError(f'Category {clean_name} already exists')
    category = Category(name=clean_name)
    db.add(category)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ValueError(f'Category {clean_name} already exists') from exc
    return category
