from __future__ import annotations

import argparse
from decimal import Decimal

from sqlalchemy import select

from restaurant_pos.db import get_engine, open_session
from restaurant_pos.models import Base, Category, Ingredient, Product, Recipe, RecipeItem

DEMO_CATEGORIES = ['Comida', 'Bebidas']

DEMO_INGREDIENTS = [
    # name, unit, current, minimum, cost per unit
    ('Harina de maíz', 'kg', Decimal('20'), Decimal('5'), Decimal('1.20')),
    ('Queso', 'kg', Decimal('8'), Decimal('2'), Decimal('6.50')),
    ('Carne mechada', 'kg', Decimal('6'), Decimal('2'), Decimal('9.00')),
]

DEMO_RECIPE_ITEMS = [
    ('Harina de maíz', Decimal('0.150')),
    ('Queso', Decimal('0.050')),
    ('Carne mechada', Decimal('0.080')),
]


def seed() -> None:
    with open_session() as db:
        categories = {}
        for name in DEMO_CATEGORIES:
            category = db.execute(select(Category).where(Category.name == name)).scalar_one_or_none()
            if not category:
                category = Category(name=name)
                db.add(category)
                db.flush()
            categories[name] = category

        ingredients = {}
        for name, unit, current, minimum, cost in DEMO_INGREDIENTS:
            ingredient = db.execute(select(Ingredient).where(Ingredient.name == name)).scalar_one_or_none()
            if not ingredient:
                ingredient = Ingredient(
                    name=name,
                    unit=unit,
                    current_quantity=current,
                    min_quantity=minimum,
                    cost_per_unit=cost,
                )
                db.add(ingredient)
                db.flush()
            ingredients[name] = ingredient

        recipe = db.execute(select(Recipe).where(Recipe.name == 'Arepa Pabellón')).scalar_one_or_none()
        if not recipe:
            recipe = Recipe(name='Arepa Pabellón', description='Arepa rellena', price=Decimal('6.50'), is_active=True)
            db.add(recipe)
            db.flush()
            db.add_all(
                [
                    RecipeItem(recipe_id=recipe.id, ingredient_id=ingredients[name].id, quantity=quantity)
                    for name, quantity in DEMO_RECIPE_ITEMS
                ]
            )

        demo_products = [
            ('Arepa Pabellón', Decimal('6.50'), 'Comida', recipe.id, 0),
            ('Malta', Decimal('2.00'), 'Bebidas', None, 24),
            ('Jugo de parchita', Decimal('3.00'), 'Bebidas', None, 12),
        ]
        for name, price, category_name, recipe_id, stock in demo_products:
            product = db.execute(select(Product).where(Product.name == name)).scalar_one_or_none()
            if not product:
                db.add(
                    Product(
                        name=name,
                        price=price,
                        category_id=categories[category_name].id,
                        recipe_id=recipe_id,
                        current_stock=stock,
                        min_stock=5,
                        is_active=True,
                    )
                )

        db.commit()


def main() -> None:
    parser = argparse.ArgumentParser(description='Insert demo catalog, ingredients and a recipe (idempotent).')
    parser.add_argument('--create-tables', action='store_true', help='Create missing tables before seeding.')
    args = parser.parse_args()

    if args.create_tables:
        Base.metadata.create_all(get_engine())
    seed()
    print('Seed data inserted/verified.')


if __name__ == '__main__':
    main()
