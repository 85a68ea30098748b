from __future__ import annotations

import unittest
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db_fixtures import make_engine
from restaurant_pos.errors import CashSessionStateError, NotFoundError
from restaurant_pos.models import CashSession
from restaurant_pos.services.cash_session_service import (
    SessionSummary,
    close_session,
    get_open_session,
    get_session_summary,
    list_sessions,
    open_session,
    require_open_session,
)


class CashSessionServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.db = Session(self.engine, autoflush=False, expire_on_commit=False)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def test_open_session_starts_with_zero_totals(self) -> None:
        session = open_session(self.db, opening_balance='100')
        self.assertIsNotNone(session.id)
        self.assertIsNone(session.closed_at)
        self.assertEqual(session.opening_balance, Decimal('100.00'))
        self.assertEqual(session.total_orders, 0)
        self.assertEqual(session.total_sales, Decimal('0.00'))
        self.assertEqual(get_open_session(self.db).id, session.id)

    def test_second_open_session_is_rejected(self) -> None:
        open_session(self.db, opening_balance=50)
        with self.assertRaises(CashSessionStateError):
            open_session(self.db, opening_balance=10)
        count = self.db.execute(select(func.count(CashSession.id))).scalar_one()
        self.assertEqual(count, 1)

    def test_unique_index_blocks_open_that_raced_the_check(self) -> None:
        open_session(self.db, opening_balance='50')
        self.db.commit()

        # The other register checked before this session row was inserted.
        with patch('restaurant_pos.services.cash_session_service.get_open_session', return_value=None):
            with self.assertRaises(CashSessionStateError) as ctx:
                open_session(self.db, opening_balance='10')
        self.db.rollback()

        self.assertIsInstance(ctx.exception.__cause__, IntegrityError)
        count = self.db.execute(select(func.count(CashSession.id))).scalar_one()
        self.assertEqual(count, 1)

    def test_negative_opening_balance_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            open_session(self.db, opening_balance='-1')

    def test_require_open_session_when_closed(self) -> None:
        with self.assertRaises(CashSessionStateError) as ctx:
            require_open_session(self.db)
        self.assertIn('closed', str(ctx.exception))

    def test_close_session_records_balance_and_hides_session(self) -> None:
        session = open_session(self.db, opening_balance='100')
        session.total_orders = 2
        session.total_sales = Decimal('25.50')
        self.db.flush()

        summary = close_session(self.db, closing_balance='120')

        self.assertEqual(summary.session_id, session.id)
        self.assertIsNotNone(summary.closed_at)
        self.assertEqual(summary.closing_balance, Decimal('120.00'))
        self.assertEqual(summary.expected_balance, Decimal('125.50'))
        self.assertEqual(summary.difference, Decimal('-5.50'))
        self.assertIsNone(get_open_session(self.db))
        self.assertFalse(summary.as_dict()['open'])

    def test_close_without_open_session_is_rejected(self) -> None:
        with self.assertRaises(CashSessionStateError):
            close_session(self.db, closing_balance=0)

    def test_new_session_can_open_after_close(self) -> None:
        first = open_session(self.db, opening_balance=0)
        close_session(self.db, closing_balance=0)
        second = open_session(self.db, opening_balance=20)
        self.assertNotEqual(first.id, second.id)
        self.assertEqual({row['id'] for row in list_sessions(self.db)}, {first.id, second.id})

    def test_get_session_summary_unknown_id(self) -> None:
        with self.assertRaises(NotFoundError):
            get_session_summary(self.db, session_id=999)


class SessionSummaryTests(unittest.TestCase):
    def test_difference_is_none_while_open(self) -> None:
        summary = SessionSummary(
            session_id=1,
            opened_at=None,
            closed_at=None,
            opening_balance=Decimal('10.00'),
            closing_balance=None,
            total_orders=1,
            total_sales=Decimal('5.00'),
        )
        self.assertTrue(summary.is_open)
        self.assertEqual(summary.expected_balance, Decimal('15.00'))
        self.assertIsNone(summary.difference)


if __name__ == '__main__':
    unittest.main()
