from decimal import Decimal
from pathlib import Path

from django.core.management import call_command
from django.test import TestCase

from ..exceptions import InsufficientStock, NotFound, RenderError, ValidationError
from ..models import Booking, StockHistory
from ..services import BookingCoordinator
from . import DocumentRootMixin, FailingDocuments, booking_payload, create_godown, create_stock


class BookingEditTests(DocumentRootMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.godown = create_godown()
        self.flower_pot = create_stock(self.godown, cases=10, per_case=12, price="100.00")
        self.sparkler = create_stock(self.godown, productname="Sparkler", cases=10, per_case=10, price="20.00")
        self.coordinator = BookingCoordinator()
        self.booking = self.coordinator.create(booking_payload((self.flower_pot, 4, "100")))

    def _document(self, pdf_path):
        return Path(self.document_root) / Path(pdf_path).name

    def test_edit_restores_old_items_and_deducts_new_ones(self):
        old_pdf = self.booking.pdf_path

        with self.captureOnCommitCallbacks(execute=True):
            booking = self.coordinator.edit(self.booking.pk, booking_payload((self.sparkler, 3, "20")))

        self.assertEqual(booking.bill_number, "BILL-001")
        self.assertEqual(booking.subtotal, Decimal("600.00"))
        self.assertNotEqual(booking.pdf_path, old_pdf)
        self.assertTrue(self._document(booking.pdf_path).exists())
        self.assertFalse(self._document(old_pdf).exists())

        self.flower_pot.refresh_from_db()
        self.sparkler.refresh_from_db()
        self.assertEqual((self.flower_pot.current_cases, self.flower_pot.taken_cases), (10, 0))
        self.assertEqual((self.sparkler.current_cases, self.sparkler.taken_cases), (7, 3))

        restored = StockHistory.objects.filter(stock=self.flower_pot).first()
        self.assertEqual(restored.action, StockHistory.ACTION_ADDED)
        self.assertEqual(restored.reason, StockHistory.REASON_BOOKING_EDIT)
        self.assertEqual(restored.reference, "BILL-001")

    def test_edit_can_reuse_the_cases_it_gives_back(self):
        booking = self.coordinator.edit(self.booking.pk, booking_payload((self.flower_pot, 10, "100")))

        self.assertEqual(booking.total_cases, 10)
        self.flower_pot.refresh_from_db()
        self.assertEqual(self.flower_pot.current_cases, 0)

    def test_failed_edit_keeps_the_original_booking(self):
        with self.assertRaises(InsufficientStock):
            self.coordinator.edit(self.booking.pk, booking_payload((self.sparkler, 11, "20")))

        booking = Booking.objects.get(pk=self.booking.pk)
        self.assertEqual(booking.items[0]["stock_id"], self.flower_pot.pk)
        self.assertEqual(booking.pdf_path, self.booking.pdf_path)
        self.flower_pot.refresh_from_db()
        self.assertEqual(self.flower_pot.current_cases, 6)
        self.assertFalse(
            StockHistory.objects.filter(reason=StockHistory.REASON_BOOKING_EDIT).exists()
        )

    def test_render_failure_during_edit_keeps_old_document(self):
        coordinator = BookingCoordinator(documents=FailingDocuments())

        with self.captureOnCommitCallbacks(execute=True):
            with self.assertRaises(RenderError):
                coordinator.edit(self.booking.pk, booking_payload((self.flower_pot, 2, "100")))

        self.assertTrue(self._document(self.booking.pdf_path).exists())
        self.flower_pot.refresh_from_db()
        self.assertEqual(self.flower_pot.current_cases, 6)

    def test_edit_unknown_booking(self):
        with self.assertRaises(NotFound):
            self.coordinator.edit(999999, booking_payload((self.flower_pot, 1, "100")))

    def test_edit_cannot_link_a_challan(self):
        with self.assertRaises(ValidationError):
            self.coordinator.edit(self.booking.pk, booking_payload((self.flower_pot, 1, "100"), challan_id=1))


class BookingDeleteTests(DocumentRootMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.godown = create_godown()
        self.stock = create_stock(self.godown, cases=10, per_case=12)
        self.coordinator = BookingCoordinator()

    def test_delete_restores_stock_and_removes_document(self):
        booking = self.coordinator.create(booking_payload((self.stock, 4, "100")))
        document = Path(self.document_root) / Path(booking.pdf_path).name

        with self.captureOnCommitCallbacks(execute=True):
            self.coordinator.delete(booking.pk)

        self.assertFalse(Booking.objects.filter(pk=booking.pk).exists())
        self.assertFalse(document.exists())
        self.stock.refresh_from_db()
        self.assertEqual((self.stock.current_cases, self.stock.taken_cases), (10, 0))
        latest = StockHistory.objects.filter(stock=self.stock).first()
        self.assertEqual(latest.reason, StockHistory.REASON_BOOKING_DELETE)

    def test_create_edit_delete_round_trip_conserves_stock(self):
        other = create_stock(self.godown, productname="Sparkler", cases=8, per_case=10)

        booking = self.coordinator.create(booking_payload((self.stock, 4, "100"), (other, 2, "20")))
        booking = self.coordinator.edit(booking.pk, booking_payload((other, 5, "20")))
        self.coordinator.delete(booking.pk)

        self.stock.refresh_from_db()
        other.refresh_from_db()
        self.assertEqual((self.stock.current_cases, self.stock.taken_cases), (10, 0))
        self.assertEqual((other.current_cases, other.taken_cases), (8, 0))
        call_command("verify_stock_ledger", verbosity=0)

    def test_delete_unknown_booking(self):
        with self.assertRaises(NotFound):
            self.coordinator.delete(999999)
