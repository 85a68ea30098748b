from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Required startup configuration is missing or invalid."""


class NotFoundError(LookupError):
    pass


class OutOfStockError(ValueError):
    pass


class EmptyOrderError(ValueError):
    pass


class CashSessionStateError(ValueError):
    """The requested action does not fit the register's open/closed state."""


class InsufficientIngredientError(ValueError):
    def __init__(self, shortages: list[dict]) -> None:
        self.shortages = shortages
        details = '; '.join(
            f"{row['name']}: need {row['required']} {row['unit']}, have {row['available']}" for row in shortages
        )
        super().__init__(f'Insufficient stock. {details}')
