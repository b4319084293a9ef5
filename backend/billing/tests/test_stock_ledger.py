from django.test import TestCase

from ..exceptions import InsufficientStock, InternalFailure, NotFound, ValidationError
from ..models import Stock, StockHistory
from ..services import StockLedger
from . import create_godown, create_stock


class StockLedgerTests(TestCase):
    def setUp(self):
        self.godown = create_godown()
        self.stock = create_stock(self.godown, cases=10, per_case=12)
        self.ledger = StockLedger()

    def test_deduct_moves_cases_and_records_taken_entry(self):
        stock = self.ledger.deduct(self.stock.pk, 4, customer_name="Ravi", reference="BILL-009")

        self.assertEqual(stock.current_cases, 6)
        self.assertEqual(stock.taken_cases, 4)
        self.assertIsNotNone(stock.last_taken_date)

        entry = StockHistory.objects.filter(stock=self.stock, action=StockHistory.ACTION_TAKEN).get()
        self.assertEqual(entry.cases, 4)
        self.assertEqual(entry.per_case_total, 48)
        self.assertEqual(entry.customer_name, "Ravi")
        self.assertEqual(entry.reference, "BILL-009")

    def test_deduct_more_than_available_changes_nothing(self):
        with self.assertRaises(InsufficientStock) as ctx:
            self.ledger.deduct(self.stock.pk, 11)

        self.assertEqual(ctx.exception.available, 10)
        self.assertEqual(ctx.exception.requested, 11)
        self.assertIn("Available: 10, Requested: 11", ctx.exception.message)

        self.stock.refresh_from_db()
        self.assertEqual(self.stock.current_cases, 10)
        self.assertEqual(self.stock.taken_cases, 0)
        self.assertFalse(StockHistory.objects.filter(action=StockHistory.ACTION_TAKEN).exists())

    def test_deduct_exactly_available_empties_row(self):
        stock = self.ledger.deduct(self.stock.pk, 10)
        self.assertEqual(stock.current_cases, 0)
        self.assertEqual(stock.taken_cases, 10)

    def test_restore_reverses_deduct(self):
        self.ledger.deduct(self.stock.pk, 4)
        stock = self.ledger.restore(self.stock.pk, 4, reason=StockHistory.REASON_BOOKING_DELETE)

        self.assertEqual(stock.current_cases, 10)
        self.assertEqual(stock.taken_cases, 0)
        latest = StockHistory.objects.filter(stock=self.stock).first()
        self.assertEqual(latest.action, StockHistory.ACTION_ADDED)
        self.assertEqual(latest.reason, StockHistory.REASON_BOOKING_DELETE)

    def test_restore_more_than_taken_is_refused(self):
        self.ledger.deduct(self.stock.pk, 2)
        with self.assertRaises(InternalFailure):
            self.ledger.restore(self.stock.pk, 3)

        self.stock.refresh_from_db()
        self.assertEqual(self.stock.taken_cases, 2)

    def test_cases_must_be_positive_integers(self):
        for bad in (0, -1, True, "3", 2.5, None):
            with self.subTest(cases=bad):
                with self.assertRaises(ValidationError):
                    self.ledger.deduct(self.stock.pk, bad)

    def test_unknown_stock_raises_not_found(self):
        with self.assertRaises(NotFound):
            self.ledger.deduct(999999, 1)
        with self.assertRaises(NotFound):
            self.ledger.restore(999999, 1)

    def test_lock_returns_rows_and_rejects_missing_ids(self):
        other = create_stock(self.godown, productname="Sparkler", cases=5)

        rows = self.ledger.lock([other.pk, self.stock.pk, other.pk])
        self.assertEqual(sorted(rows), sorted([self.stock.pk, other.pk]))

        with self.assertRaises(NotFound):
            self.ledger.lock([self.stock.pk, 999999])

    def test_receive_adds_cases_without_touching_taken(self):
        self.ledger.deduct(self.stock.pk, 3)
        stock = self.ledger.receive(self.stock.pk, 5, reference="LR-77")

        self.assertEqual(stock.current_cases, 12)
        self.assertEqual(stock.taken_cases, 3)
        latest = StockHistory.objects.filter(stock=self.stock).first()
        self.assertEqual(latest.reason, StockHistory.REASON_RECEIPT)
        self.assertEqual(latest.reference, "LR-77")

    def test_open_stock_reuses_existing_row(self):
        stock = self.ledger.open_stock(self.godown.pk, "CRACKERS", "flower pot", "standard", 2)

        self.assertEqual(stock.pk, self.stock.pk)
        self.assertEqual(stock.current_cases, 12)
        self.assertEqual(Stock.objects.count(), 1)

    def test_open_stock_requires_godown_and_catalog_entry(self):
        with self.assertRaises(NotFound):
            self.ledger.open_stock(999999, "crackers", "Flower Pot", "Standard", 1)
        with self.assertRaises(NotFound):
            self.ledger.open_stock(self.godown.pk, "crackers", "Unknown", "Standard", 1)

    def test_per_case_cannot_change(self):
        stock = Stock.objects.get(pk=self.stock.pk)
        stock.per_case = 24
        with self.assertRaises(ValueError):
            stock.save()
