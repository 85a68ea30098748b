from __future__ import annotations

from fastapi import HTTPException, Request, status
from fastapi.templating import Jinja2Templates

from restaurant_pos.errors import NotFoundError


def get_templates(request: Request) -> Jinja2Templates:
    return request.app.state.templates


def to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
