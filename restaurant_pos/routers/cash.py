from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.orm import Session

from restaurant_pos.db import get_db
from restaurant_pos.dependencies import get_templates, to_http_error
from restaurant_pos.schemas import CloseCashRequest, OpenCashRequest
from restaurant_pos.services.cash_session_service import (
    close_session,
    get_open_session,
    get_session_summary,
    list_sessions,
    open_session,
    summarize_session,
)
from restaurant_pos.services.receipt_service import render_session_summary_pdf, session_summary_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/cash', tags=['cash'])


def _summary_or_404(db: Session, session_id: int | None):
    try:
        if session_id is not None:
            return get_session_summary(db, session_id=session_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    session = get_open_session(db)
    if session is None:
        raise HTTPException(status_code=404, detail='There is no open cash session')
    return summarize_session(db, session)


@router.get('/session')
def current_session(db: Session = Depends(get_db)):
    session = get_open_session(db)
    if session is None:
        return {'open': False}
    return summarize_session(db, session).as_dict()


@router.post('/open', status_code=status.HTTP_201_CREATED)
def open_cash(payload: OpenCashRequest, db: Session = Depends(get_db)):
    try:
        session = open_session(db, opening_balance=payload.opening_balance)
    except ValueError as exc:
        db.rollback()
        logger.warning('open cash rejected: %s', exc)
        raise to_http_error(exc) from exc
    db.commit()
    return summarize_session(db, session).as_dict()


@router.post('/close')
def close_cash(payload: CloseCashRequest, db: Session = Depends(get_db)):
    try:
        summary = close_session(db, closing_balance=payload.closing_balance)
    except ValueError as exc:
        db.rollback()
        logger.warning('close cash rejected: %s', exc)
        raise to_http_error(exc) from exc
    db.commit()
    return summary.as_dict()


@router.get('/sessions')
def session_history(limit: int = 20, db: Session = Depends(get_db)):
    return {'sessions': list_sessions(db, limit=max(1, min(limit, 200)))}


@router.get('/session/summary', response_class=HTMLResponse)
def session_summary_page(request: Request, session_id: int | None = None, db: Session = Depends(get_db)):
    summary = _summary_or_404(db, session_id)
    return get_templates(request).TemplateResponse(
        request,
        'session_summary.html',
        session_summary_context(summary),
    )


@router.get('/session/summary.pdf')
def session_summary_pdf(session_id: int | None = None, db: Session = Depends(get_db)):
    summary = _summary_or_404(db, session_id)
    return Response(
        content=render_session_summary_pdf(summary),
        media_type='application/pdf',
        headers={'Content-Disposition': f'attachment; filename="cash-session-{summary.session_id}.pdf"'},
    )
