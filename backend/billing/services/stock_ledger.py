"""Row-locked stock mutations.

These helpers are the only code that changes ``Stock.current_cases`` and
``Stock.taken_cases``. Every mutation takes an explicit row-level lock before
reading the counters and writes exactly one history entry. They open a
savepoint rather than a transaction of their own when called from inside one,
so a booking that fails later rolls every mutation back with it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import DEFAULT_DB_ALIAS, transaction
from django.utils import timezone

from ..exceptions import InsufficientStock, InternalFailure, NotFound, ValidationError
from ..models import Godown, Stock, StockHistory
from .catalog import Catalog
from .history import HistoryRecorder

logger = logging.getLogger(__name__)


def _validate_cases(cases) -> int:
    if isinstance(cases, bool) or not isinstance(cases, int) or cases <= 0:
        raise ValidationError("Cases must be a positive whole number.")
    return cases


class StockLedger:
    def __init__(
        self,
        using: str = DEFAULT_DB_ALIAS,
        history: Optional[HistoryRecorder] = None,
        catalog: Optional[Catalog] = None,
    ):
        self.using = using
        self.history = history or HistoryRecorder(using=using)
        self.catalog = catalog or Catalog(using=using)

    def _locked(self, stock_id) -> Stock:
        try:
            return Stock.objects.using(self.using).select_for_update().get(pk=stock_id)
        except (Stock.DoesNotExist, ValueError, TypeError) as exc:
            raise NotFound(f"Stock entry not found for ID: {stock_id}") from exc

    def lock(self, stock_ids: Iterable) -> dict[int, Stock]:
        """Lock every row in ``stock_ids`` in ascending id order.

        Callers must already be inside a transaction; the locks are held until
        it ends. A fixed order keeps two bookings that touch the same rows from
        deadlocking on each other.
        """

        ids = sorted({int(stock_id) for stock_id in stock_ids})
        if not ids:
            return {}
        with transaction.atomic(using=self.using):
            rows = list(
                Stock.objects.using(self.using)
                .select_for_update()
                .filter(pk__in=ids)
                .order_by("pk")
            )
        found = {stock.pk: stock for stock in rows}
        missing = [stock_id for stock_id in ids if stock_id not in found]
        if missing:
            raise NotFound(f"Stock entry not found for ID: {missing[0]}")
        return found

    def deduct(
        self,
        stock_id,
        cases: int,
        *,
        customer_name: str = "",
        reason: str = StockHistory.REASON_MANUAL,
        reference: str = "",
    ) -> Stock:
        """Take ``cases`` out of stock, failing if fewer are available."""

        cases = _validate_cases(cases)
        with transaction.atomic(using=self.using):
            stock = self._locked(stock_id)
            if cases > stock.current_cases:
                raise InsufficientStock(
                    f"Insufficient stock: {stock.productname} "
                    f"(Available: {stock.current_cases}, Requested: {cases})",
                    stock_id=stock.pk,
                    available=stock.current_cases,
                    requested=cases,
                )
            stock.current_cases -= cases
            stock.taken_cases += cases
            stock.last_taken_date = timezone.now()
            stock.save(
                using=self.using,
                update_fields=["current_cases", "taken_cases", "last_taken_date"],
            )
            self.history.record(
                stock,
                StockHistory.ACTION_TAKEN,
                cases,
                customer_name=customer_name,
                reason=reason,
                reference=reference,
            )
        return stock

    def restore(
        self,
        stock_id,
        cases: int,
        *,
        customer_name: str = "",
        reason: str = StockHistory.REASON_BOOKING_EDIT,
        reference: str = "",
    ) -> Stock:
        """Reverse an earlier :meth:`deduct` of ``cases``."""

        cases = _validate_cases(cases)
        with transaction.atomic(using=self.using):
            stock = self._locked(stock_id)
            if stock.taken_cases < cases:
                raise InternalFailure(
                    f"Cannot restore {cases} cases to {stock.productname}: "
                    f"only {stock.taken_cases} were taken."
                )
            stock.current_cases += cases
            stock.taken_cases -= cases
            stock.save(using=self.using, update_fields=["current_cases", "taken_cases"])
            self.history.record(
                stock,
                StockHistory.ACTION_ADDED,
                cases,
                customer_name=customer_name,
                reason=reason,
                reference=reference,
            )
        return stock

    def receive(self, stock_id, cases: int, *, reference: str = "") -> Stock:
        """Record newly arrived cases; ``taken_cases`` is left alone."""

        cases = _validate_cases(cases)
        with transaction.atomic(using=self.using):
            stock = self._locked(stock_id)
            stock.current_cases += cases
            stock.date_added = timezone.now()
            stock.save(using=self.using, update_fields=["current_cases", "date_added"])
            self.history.record(
                stock,
                StockHistory.ACTION_ADDED,
                cases,
                reason=StockHistory.REASON_RECEIPT,
                reference=reference,
            )
        logger.info("Received %s cases into stock #%s (now %s)", cases, stock.pk, stock.current_cases)
        return stock

    def open_stock(self, godown_id, product_type: str, productname: str, brand: str, cases: int) -> Stock:
        """Receive ``cases`` of a catalog product into a godown, creating the row if needed."""

        cases = _validate_cases(cases)
        with transaction.atomic(using=self.using):
            if not Godown.objects.using(self.using).filter(pk=godown_id).exists():
                raise NotFound("Godown not found")
            product = self.catalog.lookup(product_type, productname, brand)
            stock, created = Stock.objects.using(self.using).get_or_create(
                godown_id=godown_id,
                product_type=product.product_type,
                productname=product.productname,
                brand=product.brand,
                defaults={"per_case": product.per_case, "current_cases": 0},
            )
            if created:
                logger.info("Opened stock #%s for %s in godown #%s", stock.pk, stock.productname, godown_id)
            return self.receive(stock.pk, cases)


__all__ = ["StockLedger"]
