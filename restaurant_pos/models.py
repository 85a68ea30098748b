from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
PrimaryKey = BigInteger().with_variant(Integer(), 'sqlite')


class Base(DeclarativeBase):
    pass


class MovementType(str, Enum):
    RECIPE_USED = 'RECIPE_USED'
    RECIPE_PRODUCED = 'RECIPE_PRODUCED'
    SALE = 'SALE'
    ADJUSTMENT = 'ADJUSTMENT'


class Category(Base):
    __tablename__ = 'categories'

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Ingredient(Base):
    __tablename__ = 'ingredients'
    __table_args__ = (
        CheckConstraint('current_quantity >= 0', name='ingredients_current_quantity_ck'),
        CheckConstraint('min_quantity >= 0', name='ingredients_min_quantity_ck'),
        CheckConstraint('cost_per_unit >= 0', name='ingredients_cost_per_unit_ck'),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    unit: Mapped[str] = mapped_column(Text, nullable=False, default='kg', server_default='kg')
    current_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=Decimal('0'))
    min_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=Decimal('0'))
    cost_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Recipe(Base):
    __tablename__ = 'recipes'

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    items: Mapped[list[RecipeItem]] = relationship(
        back_populates='recipe',
        cascade='all, delete-orphan',
        passive_deletes=True,
    )


class RecipeItem(Base):
    __tablename__ = 'recipe_items'
    __table_args__ = (
        UniqueConstraint('recipe_id', 'ingredient_id', name='recipe_items_recipe_ingredient_key'),
        CheckConstraint('quantity > 0', name='recipe_items_quantity_positive_ck'),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False)
    ingredient_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('ingredients.id', ondelete='CASCADE'), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)

    recipe: Mapped[Recipe] = relationship(back_populates='items')
    ingredient: Mapped[Ingredient] = relationship()


class Product(Base):
    __tablename__ = 'products'
    __table_args__ = (
        CheckConstraint('price >= 0', name='products_price_ck'),
        CheckConstraint('min_stock >= 0', name='products_min_stock_ck'),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('categories.id', ondelete='SET NULL'))
    recipe_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('recipes.id', ondelete='SET NULL'))
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    min_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=10, server_default='10')
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    category: Mapped[Category | None] = relationship()
    recipe: Mapped[Recipe | None] = relationship()


class CashSession(Base):
    __tablename__ = 'cash_sessions'

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    closing_balance: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    total_sales: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))

    @property
    def is_open(self) -> bool:
        return self.closed_at is None


# At most one register session may be open at a time.
Index(
    'cash_sessions_single_open_uq',
    CashSession.closed_at.is_(None),
    unique=True,
    postgresql_where=CashSession.closed_at.is_(None),
    sqlite_where=CashSession.closed_at.is_(None),
)


class Order(Base):
    __tablename__ = 'orders'

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    cash_session_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('cash_sessions.id'), nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class InventoryLog(Base):
    __tablename__ = 'inventory_logs'

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True)
    ingredient_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey('ingredients.id', ondelete='SET NULL')
    )
    product_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('products.id', ondelete='SET NULL'))
    recipe_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('recipes.id', ondelete='SET NULL'))
    order_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('orders.id', ondelete='SET NULL'))
    movement_type: Mapped[MovementType] = mapped_column(SQLEnum(MovementType, name='movement_type'), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
