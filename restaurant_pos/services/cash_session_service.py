from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_pos.errors import CashSessionStateError, NotFoundError
from restaurant_pos.models import CashSession, Order

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')


@dataclass
class SessionSummary:
    session_id: int
    opened_at: datetime
    closed_at: datetime | None
    opening_balance: Decimal
    closing_balance: Decimal | None
    total_orders: int
    total_sales: Decimal
    orders: list[dict] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    @property
    def expected_balance(self) -> Decimal:
        return (self.opening_balance + self.total_sales).quantize(CENTS)

    @property
    def difference(self) -> Decimal | None:
        if self.closing_balance is None:
            return None
        return (self.closing_balance - self.expected_balance).quantize(CENTS)

    def as_dict(self) -> dict:
        return {
            'session_id': self.session_id,
            'open': self.is_open,
            'opened_at': self.opened_at,
            'closed_at': self.closed_at,
            'opening_balance': self.opening_balance,
            'closing_balance': self.closing_balance,
            'total_orders': self.total_orders,
            'total_sales': self.total_sales,
            'expected_balance': self.expected_balance,
            'difference': self.difference,
            'orders': self.orders,
        }


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _money(value: Decimal | int | float | str) -> Decimal:
    amount = Decimal(str(value)).quantize(CENTS)
    if amount < 0:
        raise ValueError('Balance cannot be negative')
    return amount


def get_open_session(db: Session, *, for_update: bool = False) -> CashSession | None:
    query = select(CashSession).where(CashSession.closed_at.is_(None)).order_by(CashSession.opened_at.desc()).limit(1)
    if for_update:
        query = query.with_for_update()
    return db.execute(query).scalars().first()


def require_open_session(db: Session, *, for_update: bool = False) -> CashSession:
    session = get_open_session(db, for_update=for_update)
    if session is None:
        raise CashSessionStateError('Cash register is closed. Open it before taking orders.')
    return session


def open_session(db: Session, *, opening_balance: Decimal | int | float | str) -> CashSession:
    balance = _money(opening_balance)
    if get_open_session(db) is not None:
        raise CashSessionStateError('A cash session is already open')

    session = CashSession(
        opened_at=_now(),
        opening_balance=balance,
        total_orders=0,
        total_sales=Decimal('0.00'),
    )
    db.add(session)
    try:
        db.flush()
    except IntegrityError as exc:
        # Another register opened a session between the check and the insert.
        raise CashSessionStateError('A cash session is already open') from exc
    logger.info('cash session %s opened with balance %s', session.id, balance)
    return session


def close_session(db: Session, *, closing_balance: Decimal | int | float | str) -> SessionSummary:
    balance = _money(closing_balance)
    session = get_open_session(db, for_update=True)
    if session is None:
        raise CashSessionStateError('There is no open cash session to close')

    session.closed_at = _now()
    session.closing_balance = balance
    db.flush()
    summary = summarize_session(db, session)
    logger.info(
        'cash session %s closed: orders=%s sales=%s difference=%s',
        session.id,
        summary.total_orders,
        summary.total_sales,
        summary.difference,
    )
    return summary


def list_session_orders(db: Session, *, session_id: int) -> list[dict]:
    rows = db.execute(
        select(Order).where(Order.cash_session_id == session_id).order_by(Order.created_at.desc(), Order.id.desc())
    ).scalars().all()
    return [
        {
            'id': row.id,
            'created_at': row.created_at,
            'items': row.items,
            'total': row.total,
        }
        for row in rows
    ]


def summarize_session(db: Session, session: CashSession) -> SessionSummary:
    return SessionSummary(
        session_id=session.id,
        opened_at=session.opened_at,
        closed_at=session.closed_at,
        opening_balance=Decimal(session.opening_balance),
        closing_balance=Decimal(session.closing_balance) if session.closing_balance is not None else None,
        total_orders=session.total_orders,
        total_sales=Decimal(session.total_sales),
        orders=list_session_orders(db, session_id=session.id),
    )


def get_session_summary(db: Session, *, session_id: int) -> SessionSummary:
    session = db.execute(select(CashSession).where(CashSession.id == session_id)).scalar_one_or_none()
    if session is None:
        raise NotFoundError('Cash session not found')
    return summarize_session(db, session)


def list_sessions(db: Session, *, limit: int = 20) -> list[dict]:
    rows = db.execute(select(CashSession).order_by(CashSession.opened_at.desc()).limit(limit)).scalars().all()
    return [
        {
            'id': row.id,
            'opened_at': row.opened_at,
            'closed_at': row.closed_at,
            'opening_balance': row.opening_balance,
            'closing_balance': row.closing_balance,
            'total_orders': row.total_orders,
            'total_sales': row.total_sales,
        }
        for row in rows
    ]
