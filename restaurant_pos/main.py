from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_pos.config import settings
from restaurant_pos.db import dispose_engine, get_db
from restaurant_pos.dependencies import get_templates
from restaurant_pos.errors import ConfigurationError
from restaurant_pos.routers import cash, inventory, pos
from restaurant_pos.services.cash_session_service import get_open_session
from restaurant_pos.templating import templates

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'
ROBOTS_HEADER = 'noindex, nofollow, noarchive'


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    dispose_engine()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title='Restaurant POS', lifespan=lifespan)
    app.state.templates = templates

    @app.middleware('http')
    async def register_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers['X-Robots-Tag'] = ROBOTS_HEADER
        if request.url.path.startswith(('/pos/orders', '/cash')):
            response.headers['Cache-Control'] = 'no-store'
        return response

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error('configuration error on %s %s: %s', request.method, request.url.path, exc)
        return get_templates(request).TemplateResponse(
            request,
            'config_error.html',
            {'message': str(exc)},
            status_code=503,
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception('Database error on %s %s', request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            {
                'detail': 'The store is unavailable. Try again in a moment.',
                'code': 'db_unavailable',
            },
            status_code=503,
        )

    app.include_router(pos.router)
    app.include_router(cash.router)
    app.include_router(inventory.router)

    @app.get('/')
    def root(db: Session = Depends(get_db)):
        session = get_open_session(db)
        return {
            'service': settings.business_name,
            'cash_open': session is not None,
            'cash_session_id': session.id if session else None,
        }

    @app.get('/robots.txt', response_class=PlainTextResponse)
    def robots_txt() -> str:
        return 'User-agent: *\nDisallow: /\n'

    return app


app = create_app()
