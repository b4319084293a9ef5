"""Booking create/edit/delete as single all-or-nothing transactions.

Each operation runs through the same stages::

    validating -> line_items -> totaling -> document -> persisting -> committed

and any error on the way rolls back every stock deduction, restoration and
history entry written so far. Request validation happens before the
transaction opens, so a malformed request never takes a lock.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction
from django.utils import timezone

from ..exceptions import AlreadyConverted, BillingError, InternalFailure, NotFound, ValidationError
from ..invoice_pdf import InvoiceDocumentGenerator
from ..models import Booking, Challan, Stock, StockHistory
from ..serializers import BookingWriteSerializer
from .catalog import Catalog
from .money import to_decimal
from .sequence import SequenceAllocator
from .stock_ledger import StockLedger
from .totals import build_policy, compute_totals, line_amount

logger = logging.getLogger(__name__)

STAGE_VALIDATING = "validating"
STAGE_LINE_ITEMS = "line_items"
STAGE_TOTALING = "totaling"
STAGE_DOCUMENT = "document"
STAGE_PERSISTING = "persisting"
STAGE_COMMITTED = "committed"
STAGE_ROLLED_BACK = "rolled_back"

HEADER_FIELDS = (
    "customer_name",
    "address",
    "gstin",
    "lr_number",
    "agent_name",
    "from_location",
    "to_location",
    "through",
)

TOTAL_FIELDS = (
    "subtotal",
    "packing_charges",
    "extra_taxable_value",
    "taxable_value",
    "additional_discount_amount",
    "tax_amount",
    "net_before_round",
    "round_off",
    "grand_total",
    "total_cases",
)


def _first_error(errors) -> str:
    """Flatten DRF's nested error structure to its first message."""

    if isinstance(errors, dict):
        for key, value in errors.items():
            message = _first_error(value)
            if message:
                return message if key == "non_field_errors" else f"{key}: {message}"
    elif isinstance(errors, (list, tuple)):
        for value in errors:
            message = _first_error(value)
            if message:
                return message
    elif errors:
        return str(errors)
    return ""


def validate_request(serializer_class, data: Mapping[str, Any]) -> dict:
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        error = ValidationError(
            _first_error(serializer.errors) or ValidationError.default_message,
            detail=serializer.errors,
        )
        error.stage = STAGE_VALIDATING
        raise error
    return dict(serializer.validated_data)


def snapshot_item(
    index: int,
    stock: Stock,
    item: Mapping[str, Any],
    rate_per_box: Decimal,
    *,
    default_godown: str = "",
) -> dict:
    """Value copy of one line item; never re-read from live stock later."""

    cases = int(item["cases"])
    discount_percent = to_decimal(item.get("discount_percent"))
    quantity, amount = line_amount(cases, stock.per_case, rate_per_box, discount_percent)
    return {
        "s_no": index + 1,
        "stock_id": stock.pk,
        "product_type": stock.product_type,
        "productname": item.get("productname") or stock.productname,
        "brand": item.get("brand") or stock.brand,
        "cases": cases,
        "per_case": stock.per_case,
        "quantity": quantity,
        "rate_per_box": rate_per_box,
        "discount_percent": discount_percent,
        "amount": amount,
        "godown": item.get("godown") or default_godown or stock.godown.name,
    }


def build_invoice(header: Mapping[str, Any], items, totals, policy, *, bill_number, bill_date, **extra) -> dict:
    """Everything the document generator needs to lay out one bill."""

    invoice = {
        "bill_number": bill_number,
        "bill_date": bill_date,
        "customer_name": header.get("customer_name", ""),
        "address": header.get("address", ""),
        "gstin": header.get("gstin", ""),
        "lr_number": header.get("lr_number", ""),
        "agent_name": header.get("agent_name", ""),
        "from": header.get("from_location", ""),
        "to": header.get("to_location", ""),
        "through": header.get("through", ""),
        "stock_from": header.get("stock_from", ""),
        "items": items,
        "totals": totals,
        "policy": policy,
    }
    invoice.update(extra)
    return invoice


def settings_blob(policy: Mapping[str, Any]) -> dict:
    blob = dict(policy)
    if policy.get("apply_igst"):
        blob["tax_mode"] = "igst"
    elif policy.get("apply_cgst_sgst"):
        blob["tax_mode"] = "cgst_sgst"
    else:
        blob["tax_mode"] = "none"
    return blob


def apply_totals(booking: Booking, totals: Mapping[str, Any]) -> None:
    for field in TOTAL_FIELDS:
        setattr(booking, field, totals[field])


class OperationRun:
    """Tracks which stage an operation reached, for logging and error reports."""

    def __init__(self, operation: str):
        self.operation = operation
        self.stage = STAGE_VALIDATING

    def enter(self, stage: str) -> None:
        logger.debug("%s: entering %s", self.operation, stage)
        self.stage = stage


class TransactionRunner:
    """Shared unit-of-work handling for the coordinator and the challan converter."""

    using: str

    @contextmanager
    def unit_of_work(self, run: OperationRun):
        try:
            with transaction.atomic(using=self.using):
                yield
        except BillingError as exc:
            exc.stage = exc.stage or run.stage
            logger.warning("%s rolled back during %s: %s", run.operation, run.stage, exc)
            run.stage = STAGE_ROLLED_BACK
            raise
        except DatabaseError as exc:
            logger.exception("%s rolled back during %s after a storage error", run.operation, run.stage)
            failed_stage = run.stage
            run.stage = STAGE_ROLLED_BACK
            error = InternalFailure(f"Storage error while processing {run.operation}.")
            error.stage = failed_stage
            raise error from exc
        except Exception as exc:
            logger.exception("%s rolled back during %s after an unexpected error", run.operation, run.stage)
            failed_stage = run.stage
            run.stage = STAGE_ROLLED_BACK
            error = InternalFailure(f"Unexpected error while processing {run.operation}.")
            error.stage = failed_stage
            raise error from exc
        run.enter(STAGE_COMMITTED)


class BookingCoordinator(TransactionRunner):
    """Create, edit and delete bookings.

    ``using`` names the database alias every query and lock runs against; the
    collaborators default to instances bound to the same alias.
    """

    def __init__(
        self,
        using: str = DEFAULT_DB_ALIAS,
        *,
        documents: Optional[InvoiceDocumentGenerator] = None,
        ledger: Optional[StockLedger] = None,
        sequence: Optional[SequenceAllocator] = None,
        catalog: Optional[Catalog] = None,
    ):
        self.using = using
        self.catalog = catalog or Catalog(using=using)
        self.ledger = ledger or StockLedger(using=using, catalog=self.catalog)
        self.sequence = sequence or SequenceAllocator(using=using)
        self.documents = documents or InvoiceDocumentGenerator()

    # --- reads ---

    def get(self, booking_id) -> Booking:
        try:
            return Booking.objects.using(self.using).get(pk=booking_id)
        except (Booking.DoesNotExist, ValueError, TypeError) as exc:
            raise NotFound(f"Booking not found for ID: {booking_id}") from exc

    def list_bookings(self):
        return Booking.objects.using(self.using).order_by("-created_at", "-id")

    def customers(self) -> list[dict]:
        """Distinct customers from earlier bookings with their latest details."""

        seen: dict[str, dict] = {}
        rows = (
            Booking.objects.using(self.using)
            .order_by("-created_at", "-id")
            .values("customer_name", "address", "gstin", "agent_name")
        )
        for row in rows:
            key = row["customer_name"].strip().lower()
            if key and key not in seen:
                seen[key] = row
        return sorted(seen.values(), key=lambda row: row["customer_name"].lower())

    # --- helpers ---

    def _locked_booking(self, booking_id) -> Booking:
        try:
            return Booking.objects.using(self.using).select_for_update().get(pk=booking_id)
        except (Booking.DoesNotExist, ValueError, TypeError) as exc:
            raise NotFound(f"Booking not found for ID: {booking_id}") from exc

    def _locked_challan(self, challan_id) -> Challan:
        try:
            challan = Challan.objects.using(self.using).select_for_update().get(pk=challan_id)
        except (Challan.DoesNotExist, ValueError, TypeError) as exc:
            raise NotFound(f"Challan not found for ID: {challan_id}") from exc
        if challan.converted_to_bill:
            raise AlreadyConverted(f"Challan {challan.challan_number} has already been converted to a bill.")
        return challan

    def _stock(self, stock_id) -> Stock:
        try:
            return Stock.objects.using(self.using).get(pk=stock_id)
        except Stock.DoesNotExist as exc:
            raise NotFound(f"Stock entry not found for ID: {stock_id}") from exc

    def _rate_for(self, stock: Stock, item: Mapping[str, Any]) -> Decimal:
        rate = item.get("rate_per_box")
        if rate is None:
            return self.catalog.lookup_rate(stock.product_type, stock.productname, stock.brand)
        return to_decimal(rate)

    def _process_items(
        self,
        items: Iterable[Mapping[str, Any]],
        *,
        deduct: bool,
        customer_name: str,
        reason: str,
        reference: str = "",
        default_godown: str = "",
    ) -> list[dict]:
        """Deduct (for direct sales) and snapshot each item in submitted order."""

        snapshot = []
        for index, item in enumerate(items):
            if deduct:
                stock = self.ledger.deduct(
                    item["stock_id"],
                    int(item["cases"]),
                    customer_name=customer_name,
                    reason=reason,
                    reference=reference,
                )
            else:
                stock = self._stock(item["stock_id"])
            rate = self._rate_for(stock, item)
            snapshot.append(snapshot_item(index, stock, item, rate, default_godown=default_godown))
        return snapshot

    def _restore_items(self, booking: Booking, reason: str) -> None:
        for item in booking.items:
            self.ledger.restore(
                item["stock_id"],
                int(item["cases"]),
                customer_name=booking.customer_name,
                reason=reason,
                reference=booking.bill_number,
            )

    # --- operations ---

    def create(self, data: Mapping[str, Any]) -> Booking:
        """Create a booking and return it; ``pdf_path`` and ``grand_total`` are set."""

        run = OperationRun("create booking")
        request = validate_request(BookingWriteSerializer, data)
        policy = build_policy(request)

        with self.unit_of_work(run):
            run.enter(STAGE_LINE_ITEMS)
            challan = None
            if request.get("challan_id"):
                # The challan already took this exact stock; bill its items as issued.
                challan = self._locked_challan(request["challan_id"])
                items = challan.items
            else:
                items = request["items"]
                self.ledger.lock(item["stock_id"] for item in items)
            snapshot = self._process_items(
                items,
                deduct=challan is None,
                customer_name=request["customer_name"],
                reason=StockHistory.REASON_BOOKING,
                default_godown=request.get("stock_from", ""),
            )

            run.enter(STAGE_TOTALING)
            totals = compute_totals(snapshot, policy)
            bill_number = self.sequence.next()
            bill_date = request.get("bill_date") or timezone.localdate()

            run.enter(STAGE_DOCUMENT)
            pdf_path = self.documents.render(
                build_invoice(
                    request,
                    snapshot,
                    totals,
                    policy,
                    bill_number=bill_number,
                    bill_date=bill_date,
                    challan_number=challan.challan_number if challan else "",
                )
            )

            run.enter(STAGE_PERSISTING)
            booking = Booking(
                bill_number=bill_number,
                bill_date=bill_date,
                stock_from=request.get("stock_from", ""),
                items=snapshot,
                settings=settings_blob(policy),
                from_challan=challan is not None,
                challan=challan,
                challan_number=challan.challan_number if challan else "",
                pdf_path=pdf_path,
                **{field: request.get(field, "") for field in HEADER_FIELDS},
            )
            apply_totals(booking, totals)
            booking.save(using=self.using)

            if challan is not None:
                challan.converted_to_bill = True
                challan.converted_at = timezone.now()
                challan.save(using=self.using, update_fields=["converted_to_bill", "converted_at"])

        logger.info(
            "Booking %s created for %s: %s items, grand total %s",
            booking.bill_number,
            booking.customer_name,
            len(snapshot),
            booking.grand_total,
        )
        return booking

    def edit(self, booking_id, data: Mapping[str, Any]) -> Booking:
        """Replace a booking's items and header; the bill number is kept."""

        run = OperationRun("edit booking")
        request = validate_request(BookingWriteSerializer, data)
        if request.get("challan_id"):
            raise ValidationError("A booking cannot be re-linked to a challan.")
        policy = build_policy(request)

        with self.unit_of_work(run):
            booking = self._locked_booking(booking_id)
            if booking.from_challan:
                raise ValidationError("Bookings converted from a challan cannot be edited.")
            previous_pdf = booking.pdf_path

            run.enter(STAGE_LINE_ITEMS)
            new_items = request["items"]
            self.ledger.lock(
                [item["stock_id"] for item in booking.items]
                + [item["stock_id"] for item in new_items]
            )
            self._restore_items(booking, StockHistory.REASON_BOOKING_EDIT)
            snapshot = self._process_items(
                new_items,
                deduct=True,
                customer_name=request["customer_name"],
                reason=StockHistory.REASON_BOOKING_EDIT,
                reference=booking.bill_number,
                default_godown=request.get("stock_from", ""),
            )

            run.enter(STAGE_TOTALING)
            totals = compute_totals(snapshot, policy)
            bill_date = request.get("bill_date") or booking.bill_date

            run.enter(STAGE_DOCUMENT)
            pdf_path = self.documents.render(
                build_invoice(
                    request,
                    snapshot,
                    totals,
                    policy,
                    bill_number=booking.bill_number,
                    bill_date=bill_date,
                )
            )

            run.enter(STAGE_PERSISTING)
            for field in HEADER_FIELDS:
                setattr(booking, field, request.get(field, ""))
            booking.stock_from = request.get("stock_from", "")
            booking.bill_date = bill_date
            booking.items = snapshot
            booking.settings = settings_blob(policy)
            booking.pdf_path = pdf_path
            apply_totals(booking, totals)
            booking.save(using=self.using)

            if previous_pdf and previous_pdf != pdf_path:
                transaction.on_commit(lambda: self.documents.discard(previous_pdf), using=self.using)

        logger.info("Booking %s edited: %s items, grand total %s", booking.bill_number, len(snapshot), booking.grand_total)
        return booking

    def delete(self, booking_id) -> None:
        """Restore the booking's stock, delete it and drop its document."""

        run = OperationRun("delete booking")
        with self.unit_of_work(run):
            booking = self._locked_booking(booking_id)
            bill_number = booking.bill_number

            run.enter(STAGE_LINE_ITEMS)
            # Stock behind a converted challan belongs to the challan, not the bill.
            if not booking.from_challan:
                self.ledger.lock(item["stock_id"] for item in booking.items)
                self._restore_items(booking, StockHistory.REASON_BOOKING_DELETE)

            run.enter(STAGE_PERSISTING)
            pdf_path = booking.pdf_path
            booking.delete(using=self.using)
            if pdf_path:
                transaction.on_commit(lambda: self.documents.discard(pdf_path), using=self.using)

        logger.info("Booking %s deleted", bill_number)


__all__ = [
    "BookingCoordinator",
    "OperationRun",
    "STAGE_COMMITTED",
    "STAGE_DOCUMENT",
    "STAGE_LINE_ITEMS",
    "STAGE_PERSISTING",
    "STAGE_ROLLED_BACK",
    "STAGE_TOTALING",
    "STAGE_VALIDATING",
    "TransactionRunner",
    "build_invoice",
    "snapshot_item",
    "validate_request",
]
