from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from restaurant_pos.db import get_db
from restaurant_pos.dependencies import to_http_error
from restaurant_pos.errors import InsufficientIngredientError
from restaurant_pos.schemas import (
    CategoryCreate,
    IngredientCreate,
    IngredientLevelsUpdate,
    PrepareRequest,
    ProductCreate,
    ProductUpdate,
    RecipeCreate,
)
from restaurant_pos.services.ingredient_service import (
    create_ingredient,
    delete_ingredient,
    inventory_dashboard,
    list_ingredients,
    update_ingredient_levels,
)
from restaurant_pos.services.inventory_log_service import list_movements
from restaurant_pos.services.product_service import (
    create_category,
    create_product,
    delete_product,
    list_categories,
    list_products,
    update_product,
)
from restaurant_pos.services.recipe_service import (
    RecipeItemInput,
    create_recipe,
    delete_recipe,
    get_recipe_detail,
    list_recipes,
    prepare_recipe,
    toggle_recipe_active,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/inventory', tags=['inventory'])


def _fail(db: Session, exc: Exception, action: str):
    db.rollback()
    logger.warning('%s rejected: %s', action, exc)
    return to_http_error(exc)


@router.get('/dashboard')
def dashboard(db: Session = Depends(get_db)):
    return inventory_dashboard(db)


@router.get('/ingredients')
def ingredients(search: str | None = None, db: Session = Depends(get_db)):
    return {'ingredients': list_ingredients(db, search=search)}


@router.post('/ingredients', status_code=status.HTTP_201_CREATED)
def add_ingredient(payload: IngredientCreate, db: Session = Depends(get_db)):
    try:
        ingredient = create_ingredient(db, **payload.model_dump())
    except ValueError as exc:
        raise _fail(db, exc, 'create ingredient') from exc
    db.commit()
    return {'id': ingredient.id, 'name': ingredient.name}


@router.patch('/ingredients/{ingredient_id}')
def edit_ingredient(ingredient_id: int, payload: IngredientLevelsUpdate, db: Session = Depends(get_db)):
    try:
        ingredient = update_ingredient_levels(
            db,
            ingredient_id=ingredient_id,
            current_quantity=payload.current_quantity,
            min_quantity=payload.min_quantity,
        )
    except (ValueError, LookupError) as exc:
        raise _fail(db, exc, 'update ingredient') from exc
    db.commit()
    return {
        'id': ingredient.id,
        'current_quantity': ingredient.current_quantity,
        'min_quantity': ingredient.min_quantity,
    }


@router.delete('/ingredients/{ingredient_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_ingredient(ingredient_id: int, db: Session = Depends(get_db)):
    try:
        delete_ingredient(db, ingredient_id=ingredient_id)
    except LookupError as exc:
        raise _fail(db, exc, 'delete ingredient') from exc
    db.commit()


@router.get('/recipes')
def recipes(active_only: bool = False, db: Session = Depends(get_db)):
    return {'recipes': list_recipes(db, active_only=active_only)}


@router.post('/recipes', status_code=status.HTTP_201_CREATED)
def add_recipe(payload: RecipeCreate, db: Session = Depends(get_db)):
    try:
        recipe = create_recipe(
            db,
            name=payload.name,
            description=payload.description,
            price=payload.price,
            items=[RecipeItemInput(ingredient_id=item.ingredient_id, quantity=item.quantity) for item in payload.items],
        )
    except (ValueError, LookupError) as exc:
        raise _fail(db, exc, 'create recipe') from exc
    db.commit()
    return get_recipe_detail(db, recipe_id=recipe.id)


@router.get('/recipes/{recipe_id}')
def recipe_detail(recipe_id: int, db: Session = Depends(get_db)):
    try:
        return get_recipe_detail(db, recipe_id=recipe_id)
    except LookupError as exc:
        raise to_http_error(exc) from exc


@router.post('/recipes/{recipe_id}/toggle')
def toggle_recipe(recipe_id: int, db: Session = Depends(get_db)):
    try:
        recipe = toggle_recipe_active(db, recipe_id=recipe_id)
    except LookupError as exc:
        raise _fail(db, exc, 'toggle recipe') from exc
    db.commit()
    return {'id': recipe.id, 'is_active': recipe.is_active}


@router.delete('/recipes/{recipe_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_recipe(recipe_id: int, db: Session = Depends(get_db)):
    try:
        delete_recipe(db, recipe_id=recipe_id)
    except LookupError as exc:
        raise _fail(db, exc, 'delete recipe') from exc
    db.commit()


@router.post('/recipes/{recipe_id}/prepare')
def prepare(recipe_id: int, payload: PrepareRequest, db: Session = Depends(get_db)):
    try:
        result = prepare_recipe(db, recipe_id=recipe_id, multiplier=payload.quantity)
    except InsufficientIngredientError as exc:
        db.rollback()
        logger.warning('recipe %s preparation rejected: %s', recipe_id, exc)
        raise to_http_error(exc) from exc
    except (ValueError, LookupError) as exc:
        raise _fail(db, exc, 'prepare recipe') from exc
    db.commit()
    return {
        'recipe_id': result.recipe_id,
        'recipe_name': result.recipe_name,
        'quantity': result.multiplier,
        'consumed': result.consumed,
        'product_id': result.product_id,
        'product_name': result.product_name,
        'product_stock': result.product_stock,
    }


@router.get('/products')
def products(db: Session = Depends(get_db)):
    return {'products': list_products(db)}


@router.post('/products', status_code=status.HTTP_201_CREATED)
def add_product(payload: ProductCreate, db: Session = Depends(get_db)):
    try:
        product = create_product(db, **payload.model_dump())
    except (ValueError, LookupError) as exc:
        raise _fail(db, exc, 'create product') from exc
    db.commit()
    return {'id': product.id, 'name': product.name, 'min_stock': product.min_stock}


@router.patch('/products/{product_id}')
def edit_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    try:
        product = update_product(db, product_id=product_id, **payload.model_dump(exclude_unset=True))
    except (ValueError, LookupError) as exc:
        raise _fail(db, exc, 'update product') from exc
    db.commit()
    return {
        'id': product.id,
        'name': product.name,
        'price': product.price,
        'current_stock': product.current_stock,
        'min_stock': product.min_stock,
        'is_active': product.is_active,
    }


@router.delete('/products/{product_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_product(product_id: int, db: Session = Depends(get_db)):
    try:
        delete_product(db, product_id=product_id)
    except LookupError as exc:
        raise _fail(db, exc, 'delete product') from exc
    db.commit()


@router.get('/categories')
def categories(db: Session = Depends(get_db)):
    return {'categories': list_categories(db)}


@router.post('/categories', status_code=status.HTTP_201_CREATED)
def add_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    try:
        category = create_category(db, name=payload.name)
    except ValueError as exc:
        raise _fail(db, exc, 'create category') from exc
    db.commit()
    return {'id': category.id, 'name': category.name}


@router.get('/logs')
def logs(
    limit: int = 50,
    ingredient_id: int | None = None,
    product_id: int | None = None,
    db: Session = Depends(get_db),
):
    return {
        'logs': list_movements(
            db,
            limit=max(1, min(limit, 500)),
            ingredient_id=ingredient_id,
            product_id=product_id,
        )
    }
