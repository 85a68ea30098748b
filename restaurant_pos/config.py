from __future__ import annotations

from sqlalchemy.engine import make_url
from pydantic_settings import BaseSettings, SettingsConfigDict

from restaurant_pos.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    database_url: str | None = None
    database_api_key: str | None = None
    database_echo: bool = False

    business_name: str = 'Parada Caribe'
    business_tagline: str = 'Tu sabor caribeño favorito'
    currency_symbol: str = '$'

    clamp_stock_at_zero: bool = True
    require_linked_product: bool = True
    default_min_stock: int = 10

    log_level: str = 'INFO'

    @property
    def database_url_normalized(self) -> str | None:
        if not self.database_url:
            return None
        url = self.database_url.strip()
        if url.startswith('postgres://'):
            return 'postgresql+psycopg://' + url[len('postgres://') :]
        if url.startswith('postgresql://'):
            return 'postgresql+psycopg://' + url[len('postgresql://') :]
        return url


def resolve_database_url(config: Settings) -> str:
    url = config.database_url_normalized
    if not url:
        raise ConfigurationError('DATABASE_URL is not set. Configure the store endpoint before starting the POS.')
    if config.database_api_key:
        return make_url(url).set(password=config.database_api_key).render_as_string(hide_password=False)
    return url


settings = Settings()
