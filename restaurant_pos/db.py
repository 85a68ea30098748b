from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from restaurant_pos.config import resolve_database_url, settings

SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_engine(
        resolve_database_url(settings),
        echo=settings.database_echo,
        pool_pre_ping=True,
    )


def open_session() -> Session:
    return SessionLocal(bind=get_engine())


def dispose_engine() -> None:
    if get_engine.cache_info().currsize:
        get_engine().dispose()
        get_engine.cache_clear()


def get_db() -> Iterator[Session]:
    db = open_session()
    try:
        yield db
    finally:
        db.close()
