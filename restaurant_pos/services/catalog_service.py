from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from restaurant_pos.models import Category, Product

UNCATEGORIZED = 'Otros'


@dataclass(frozen=True)
class CatalogProduct:
    id: int
    name: str
    price: Decimal
    category: str
    recipe_id: int | None
    current_stock: int
    min_stock: int

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock

    @property
    def is_out_of_stock(self) -> bool:
        return self.recipe_id is None and self.current_stock <= 0

    def as_dict(self) -> dict:
        return {
            **asdict(self),
            'is_low_stock': self.is_low_stock,
            'is_out_of_stock': self.is_out_of_stock,
        }


def list_catalog(db: Session, *, include_inactive: bool = False) -> list[CatalogProduct]:
    query = (
        select(Product, Category.name)
        .outerjoin(Category, Category.id == Product.category_id)
        .order_by(Category.name.asc().nulls_last(), Product.name.asc())
    )
    if not include_inactive:
        query = query.where(Product.is_active.is_(True))

    return [
        CatalogProduct(
            id=product.id,
            name=product.name,
            price=Decimal(product.price),
            category=category_name or UNCATEGORIZED,
            recipe_id=product.recipe_id,
            current_stock=product.current_stock,
            min_stock=product.min_stock,
        )
        for product, category_name in db.execute(query).all()
    ]


def group_by_category(products: list[CatalogProduct]) -> dict[str, list[CatalogProduct]]:
    grouped: dict[str, list[CatalogProduct]] = {}
    for product in products:
        grouped.setdefault(product.category, []).append(product)
    return grouped
