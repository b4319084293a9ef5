"""Delivery challans: issue them against stock, then bill them exactly once."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS
from django.utils import timezone

from ..exceptions import AlreadyConverted, NotFound, ValidationError
from ..invoice_pdf import InvoiceDocumentGenerator
from ..models import Booking, Challan, Stock, StockHistory
from ..serializers import ChallanWriteSerializer
from .bookings import (
    HEADER_FIELDS,
    STAGE_DOCUMENT,
    STAGE_LINE_ITEMS,
    STAGE_PERSISTING,
    STAGE_TOTALING,
    OperationRun,
    TransactionRunner,
    apply_totals,
    build_invoice,
    settings_blob,
    snapshot_item,
    validate_request,
)
from .catalog import Catalog
from .money import to_decimal
from .sequence import CHALLAN_SEQUENCE, SequenceAllocator
from .stock_ledger import StockLedger
from .totals import compute_totals, plain_policy

logger = logging.getLogger(__name__)


class ChallanConverter(TransactionRunner):
    """Issue challans and convert them into bookings.

    Stock leaves the godown when the challan is issued; converting it later
    only writes the bill, so the conversion never touches stock rows.
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
        self.sequence = sequence or SequenceAllocator(
            using=using,
            name=CHALLAN_SEQUENCE,
            prefix=getattr(settings, "CHALLAN_NUMBER_PREFIX", "DC-"),
            model=Challan,
            field="challan_number",
        )
        self.documents = documents or InvoiceDocumentGenerator()

    def get(self, challan_id) -> Challan:
        try:
            return Challan.objects.using(self.using).get(pk=challan_id)
        except (Challan.DoesNotExist, ValueError, TypeError) as exc:
            raise NotFound(f"Challan not found for ID: {challan_id}") from exc

    def list_challans(self):
        return Challan.objects.using(self.using).order_by("-created_at", "-id")

    def issue(self, data: Mapping[str, Any]) -> Challan:
        """Create a challan and deduct its cases from stock."""

        run = OperationRun("issue challan")
        request = validate_request(ChallanWriteSerializer, data)

        with self.unit_of_work(run):
            challan_number = (request.get("challan_number") or "").strip()
            if challan_number and Challan.objects.using(self.using).filter(challan_number=challan_number).exists():
                raise ValidationError(f"Challan number {challan_number} is already in use.")

            run.enter(STAGE_LINE_ITEMS)
            items = request["items"]
            self.ledger.lock(item["stock_id"] for item in items)
            challan_number = challan_number or self.sequence.next()
            snapshot = []
            for index, item in enumerate(items):
                stock = self.ledger.deduct(
                    item["stock_id"],
                    int(item["cases"]),
                    customer_name=request["customer_name"],
                    reason=StockHistory.REASON_CHALLAN,
                    reference=challan_number,
                )
                rate = item.get("rate_per_box")
                if rate is None:
                    rate = self.catalog.lookup_rate(stock.product_type, stock.productname, stock.brand)
                snapshot.append(snapshot_item(index, stock, item, to_decimal(rate)))

            run.enter(STAGE_PERSISTING)
            challan = Challan(
                challan_number=challan_number,
                challan_date=request.get("challan_date") or timezone.localdate(),
                items=snapshot,
                total_cases=sum(item["cases"] for item in snapshot),
                **{field: request.get(field, "") for field in HEADER_FIELDS},
            )
            challan.save(using=self.using)

        logger.info("Challan %s issued to %s: %s cases", challan.challan_number, challan.customer_name, challan.total_cases)
        return challan

    def convert(self, challan_id) -> Booking:
        """Bill a challan: no stock movement, no fees, discount or tax."""

        run = OperationRun("convert challan")
        with self.unit_of_work(run):
            try:
                challan = Challan.objects.using(self.using).select_for_update().get(pk=challan_id)
            except (Challan.DoesNotExist, ValueError, TypeError) as exc:
                raise NotFound(f"Challan not found for ID: {challan_id}") from exc
            if challan.converted_to_bill:
                raise AlreadyConverted(f"Challan {challan.challan_number} has already been converted to a bill.")

            run.enter(STAGE_LINE_ITEMS)
            # Rates come from the challan itself; discounts are dropped.
            stocks = (
                Stock.objects.using(self.using)
                .select_related("godown")
                .in_bulk([int(item["stock_id"]) for item in challan.items])
            )
            items = []
            for index, item in enumerate(challan.items):
                stock = stocks.get(int(item["stock_id"]))
                if stock is None:
                    raise NotFound(f"Stock entry not found for ID: {item['stock_id']}")
                line = dict(item, discount_percent=0)
                items.append(snapshot_item(index, stock, line, to_decimal(item.get("rate_per_box"))))

            run.enter(STAGE_TOTALING)
            policy = plain_policy()
            totals = compute_totals(items, policy)
            bill_number = f"{getattr(settings, 'CHALLAN_BILL_PREFIX', 'BILL-')}{challan.challan_number}"
            if Booking.objects.using(self.using).filter(bill_number=bill_number).exists():
                raise AlreadyConverted(f"Bill {bill_number} already exists for challan {challan.challan_number}.")
            bill_date = timezone.localdate()
            header = {field: getattr(challan, field) for field in HEADER_FIELDS}

            run.enter(STAGE_DOCUMENT)
            pdf_path = self.documents.render(
                build_invoice(
                    header,
                    items,
                    totals,
                    policy,
                    bill_number=bill_number,
                    bill_date=bill_date,
                    challan_number=challan.challan_number,
                )
            )

            run.enter(STAGE_PERSISTING)
            booking = Booking(
                bill_number=bill_number,
                bill_date=bill_date,
                items=items,
                settings=settings_blob(policy),
                from_challan=True,
                challan=challan,
                challan_number=challan.challan_number,
                pdf_path=pdf_path,
                **header,
            )
            apply_totals(booking, totals)
            booking.save(using=self.using)

            challan.converted_to_bill = True
            challan.converted_at = timezone.now()
            challan.save(using=self.using, update_fields=["converted_to_bill", "converted_at"])

        logger.info(
            "Challan %s converted to bill %s, grand total %s",
            challan.challan_number,
            booking.bill_number,
            booking.grand_total,
        )
        return booking


__all__ = ["ChallanConverter"]
