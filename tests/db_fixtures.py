from __future__ import annotations

from decimal import Decimal

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from restaurant_pos.models import Base, Category, Ingredient, Product, Recipe, RecipeItem


def make_engine(path: str | None = None) -> Engine:
    if path is None:
        engine = create_engine(
            'sqlite://',
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )
    else:
        # A file database gives each session its own connection.
        engine = create_engine(f'sqlite:///{path}')

    @event.listens_for(engine, 'connect')
    def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
        dbapi_connection.execute('PRAGMA foreign_keys = ON')

    Base.metadata.create_all(engine)
    return engine


def add_product(
    db: Session,
    *,
    name: str,
    price: str = '5.00',
    stock: int = 10,
    min_stock: int = 2,
    recipe_id: int | None = None,
    category: Category | None = None,
) -> Product:
    product = Product(
        name=name,
        price=Decimal(price),
        current_stock=stock,
        min_stock=min_stock,
        recipe_id=recipe_id,
        category_id=category.id if category else None,
        is_active=True,
    )
    db.add(product)
    db.flush()
    return product


def add_recipe_with_ingredient(
    db: Session,
    *,
    per_unit: str,
    available: str,
    ingredient_name: str = 'Harina',
) -> tuple[Recipe, Ingredient]:
    ingredient = Ingredient(
        name=ingredient_name,
        unit='kg',
        current_quantity=Decimal(available),
        min_quantity=Decimal('0'),
        cost_per_unit=Decimal('1.00'),
    )
    recipe = Recipe(name='Arepa', price=Decimal('6.50'), is_active=True)
    db.add_all([ingredient, recipe])
    db.flush()
    db.add(RecipeItem(recipe_id=recipe.id, ingredient_id=ingredient.id, quantity=Decimal(per_unit)))
    db.flush()
    return recipe, ingredient
