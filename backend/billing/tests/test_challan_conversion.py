from decimal import Decimal

from django.test import TestCase, override_settings

from ..exceptions import AlreadyConverted, InsufficientStock, NotFound, RenderError, ValidationError
from ..models import Booking, Challan, StockHistory
from ..services import BookingCoordinator, ChallanConverter
from . import DocumentRootMixin, FailingDocuments, create_godown, create_stock


def challan_payload(*items, **overrides):
    payload = {
        "customer_name": "Ravi Traders",
        "from": "Sivakasi",
        "to": "Madurai",
        "through": "Lorry",
        "items": [
            {"stock_id": stock.pk, "cases": cases, "rate_per_box": rate, "discount_percent": "5"}
            for stock, cases, rate in items
        ],
    }
    payload.update(overrides)
    return payload


class ChallanIssueTests(DocumentRootMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.stock = create_stock(create_godown(), cases=10, per_case=12)
        self.converter = ChallanConverter()

    def test_issue_deducts_stock_under_challan_number(self):
        challan = self.converter.issue(challan_payload((self.stock, 3, "100")))

        self.assertEqual(challan.challan_number, "DC-001")
        self.assertEqual(challan.total_cases, 3)
        self.assertFalse(challan.converted_to_bill)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.current_cases, 7)

        entry = StockHistory.objects.get(stock=self.stock, action=StockHistory.ACTION_TAKEN)
        self.assertEqual(entry.reason, StockHistory.REASON_CHALLAN)
        self.assertEqual(entry.reference, "DC-001")

    def test_issue_with_explicit_number(self):
        challan = self.converter.issue(challan_payload((self.stock, 1, "100"), challan_number="DC-500"))
        self.assertEqual(challan.challan_number, "DC-500")

        with self.assertRaises(ValidationError):
            self.converter.issue(challan_payload((self.stock, 1, "100"), challan_number="DC-500"))

    def test_issue_with_insufficient_stock_creates_nothing(self):
        with self.assertRaises(InsufficientStock):
            self.converter.issue(challan_payload((self.stock, 11, "100")))

        self.assertEqual(Challan.objects.count(), 0)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.current_cases, 10)


class ChallanConvertTests(DocumentRootMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.stock = create_stock(create_godown(), cases=10, per_case=12)
        self.converter = ChallanConverter()
        self.challan = self.converter.issue(challan_payload((self.stock, 3, "100")))

    def test_convert_creates_plain_bill_without_touching_stock(self):
        history_before = StockHistory.objects.count()

        booking = self.converter.convert(self.challan.pk)

        self.assertEqual(booking.bill_number, "BILL-DC-001")
        self.assertTrue(booking.from_challan)
        self.assertEqual(booking.challan_id, self.challan.pk)
        self.assertEqual(booking.challan_number, "DC-001")
        self.assertEqual(booking.subtotal, Decimal("3600.00"))
        self.assertEqual(booking.packing_charges, Decimal("0"))
        self.assertEqual(booking.tax_amount, Decimal("0"))
        self.assertEqual(booking.grand_total, Decimal("3600"))
        self.assertEqual(Decimal(booking.items[0]["discount_percent"]), Decimal("0"))
        self.assertEqual(booking.to_location, "Madurai")

        self.challan.refresh_from_db()
        self.assertTrue(self.challan.converted_to_bill)
        self.assertIsNotNone(self.challan.converted_at)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.current_cases, 7)
        self.assertEqual(StockHistory.objects.count(), history_before)

    def test_second_conversion_is_refused(self):
        self.converter.convert(self.challan.pk)

        with self.assertRaises(AlreadyConverted):
            self.converter.convert(self.challan.pk)
        self.assertEqual(Booking.objects.count(), 1)

    @override_settings(CHALLAN_BILL_PREFIX="INV-")
    def test_bill_prefix_comes_from_settings(self):
        booking = self.converter.convert(self.challan.pk)
        self.assertEqual(booking.bill_number, "INV-DC-001")

    def test_unknown_challan(self):
        with self.assertRaises(NotFound):
            self.converter.convert(999999)

    def test_render_failure_leaves_challan_unconverted(self):
        converter = ChallanConverter(documents=FailingDocuments())

        with self.assertRaises(RenderError):
            converter.convert(self.challan.pk)

        self.challan.refresh_from_db()
        self.assertFalse(self.challan.converted_to_bill)
        self.assertEqual(Booking.objects.count(), 0)

    def test_booking_created_from_challan_skips_deduction(self):
        coordinator = BookingCoordinator()
        booking = coordinator.create(
            {
                "customer_name": "Ravi Traders",
                "from": "Sivakasi",
                "to": "Madurai",
                "through": "Lorry",
                "challan_id": self.challan.pk,
            }
        )

        self.assertTrue(booking.from_challan)
        self.assertEqual(booking.challan_number, "DC-001")
        self.assertEqual(booking.total_cases, 3)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.current_cases, 7)
        self.challan.refresh_from_db()
        self.assertTrue(self.challan.converted_to_bill)

        with self.assertRaises(AlreadyConverted):
            self.converter.convert(self.challan.pk)

    def test_booking_from_challan_rejects_its_own_items(self):
        other = create_stock(self.stock.godown, productname="Sparkler", cases=5)
        payload = {
            "customer_name": "Ravi Traders",
            "from": "Sivakasi",
            "to": "Madurai",
            "through": "Lorry",
            "challan_id": self.challan.pk,
            "items": [{"stock_id": other.pk, "cases": 500, "rate_per_box": "1"}],
        }

        with self.assertRaises(ValidationError):
            BookingCoordinator().create(payload)

        self.assertEqual(Booking.objects.count(), 0)
        self.challan.refresh_from_db()
        self.assertFalse(self.challan.converted_to_bill)
        other.refresh_from_db()
        self.assertEqual(other.current_cases, 5)

        del payload["items"]
        booking = BookingCoordinator().create(payload)
        self.assertEqual([item["stock_id"] for item in booking.items], [self.stock.pk])
        self.assertEqual(booking.total_cases, 3)

    def test_converted_bookings_are_immutable_and_delete_keeps_stock(self):
        booking = self.converter.convert(self.challan.pk)
        coordinator = BookingCoordinator()

        with self.assertRaises(ValidationError):
            coordinator.edit(
                booking.pk,
                {
                    "customer_name": "Ravi Traders",
                    "from": "Sivakasi",
                    "to": "Madurai",
                    "through": "Lorry",
                    "items": [{"stock_id": self.stock.pk, "cases": 1}],
                },
            )

        with self.captureOnCommitCallbacks(execute=True):
            coordinator.delete(booking.pk)

        self.stock.refresh_from_db()
        self.assertEqual(self.stock.current_cases, 7)
        self.challan.refresh_from_db()
        self.assertTrue(self.challan.converted_to_bill)
