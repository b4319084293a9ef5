from django.test import TestCase, override_settings

from ..models import BillSequence, Booking, Challan
from ..services import SequenceAllocator
from ..services.sequence import CHALLAN_SEQUENCE


class SequenceAllocatorTests(TestCase):
    def test_numbers_increase_from_one(self):
        allocator = SequenceAllocator()
        self.assertEqual(allocator.next(), "BILL-001")
        self.assertEqual(allocator.next(), "BILL-002")
        self.assertEqual(BillSequence.objects.get(name="bill").last_value, 2)

    def test_existing_numbers_are_skipped(self):
        Booking.objects.create(
            bill_number="BILL-001",
            customer_name="Walk-in",
            from_location="A",
            to_location="B",
            through="C",
        )
        self.assertEqual(SequenceAllocator().next(), "BILL-002")

    def test_deleted_bookings_do_not_free_their_number(self):
        allocator = SequenceAllocator()
        number = allocator.next()
        Booking.objects.create(
            bill_number=number,
            customer_name="Walk-in",
            from_location="A",
            to_location="B",
            through="C",
        ).delete()
        self.assertEqual(allocator.next(), "BILL-002")

    @override_settings(BILL_NUMBER_PREFIX="INV/", BILL_NUMBER_WIDTH=5)
    def test_prefix_and_width_come_from_settings(self):
        self.assertEqual(SequenceAllocator().next(), "INV/00001")

    def test_named_sequences_are_independent(self):
        challans = SequenceAllocator(
            name=CHALLAN_SEQUENCE, prefix="DC-", model=Challan, field="challan_number"
        )
        self.assertEqual(challans.next(), "DC-001")
        self.assertEqual(SequenceAllocator().next(), "BILL-001")
        self.assertEqual(challans.next(), "DC-002")
