"""Row-lock behaviour under real concurrent transactions.

These run only against PostgreSQL; SQLite has no row locks. Run them with::

    DB_ENGINE=postgres DB_NAME=godown DB_USER=... DB_PASSWORD=... \\
        pytest backend/billing/tests/test_concurrency.py
"""

import threading
import unittest

from django.db import connection, connections
from django.test import TransactionTestCase

from ..exceptions import AlreadyConverted, InsufficientStock
from ..models import Booking, StockHistory
from ..services import BookingCoordinator, ChallanConverter
from . import DocumentRootMixin, booking_payload, create_godown, create_stock


def run_in_threads(count, target):
    """Start ``count`` threads at once and collect what each returned or raised."""

    barrier = threading.Barrier(count)
    results = []
    lock = threading.Lock()

    def worker():
        try:
            barrier.wait()
            outcome = target()
        except Exception as exc:
            outcome = exc
        finally:
            connections.close_all()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results


@unittest.skipUnless(connection.vendor == "postgresql", "row locks need PostgreSQL")
class ConcurrentBookingTests(DocumentRootMixin, TransactionTestCase):
    def setUp(self):
        super().setUp()
        self.godown = create_godown()

    def test_no_oversell_under_contention(self):
        stock = create_stock(self.godown, cases=5, per_case=12)

        results = run_in_threads(
            8, lambda: BookingCoordinator().create(booking_payload((stock, 1, "100")))
        )

        created = [result for result in results if isinstance(result, Booking)]
        refused = [result for result in results if isinstance(result, InsufficientStock)]
        self.assertEqual(len(created), 5)
        self.assertEqual(len(refused), 3)
        self.assertEqual(len({booking.bill_number for booking in created}), 5)

        stock.refresh_from_db()
        self.assertEqual(stock.current_cases, 0)
        self.assertEqual(
            StockHistory.objects.filter(stock=stock, action=StockHistory.ACTION_TAKEN).count(), 5
        )

    def test_opposite_item_orders_do_not_deadlock(self):
        first = create_stock(self.godown, productname="Flower Pot", cases=20)
        second = create_stock(self.godown, productname="Sparkler", cases=20)
        payloads = [
            booking_payload((first, 1, "10"), (second, 1, "10")),
            booking_payload((second, 1, "10"), (first, 1, "10")),
        ]
        counter = iter(range(len(payloads) * 3))

        def book():
            return BookingCoordinator().create(payloads[next(counter) % 2])

        results = run_in_threads(6, book)

        self.assertTrue(all(isinstance(result, Booking) for result in results), results)
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual((first.current_cases, second.current_cases), (14, 14))

    def test_challan_converts_exactly_once(self):
        stock = create_stock(self.godown, cases=10)
        challan = ChallanConverter().issue(
            {
                "customer_name": "Ravi Traders",
                "items": [{"stock_id": stock.pk, "cases": 2, "rate_per_box": "100"}],
            }
        )

        results = run_in_threads(4, lambda: ChallanConverter().convert(challan.pk))

        self.assertEqual(len([result for result in results if isinstance(result, Booking)]), 1)
        self.assertEqual(len([result for result in results if isinstance(result, AlreadyConverted)]), 3)
        self.assertEqual(Booking.objects.filter(challan=challan).count(), 1)
