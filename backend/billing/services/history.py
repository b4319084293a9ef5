"""Append-only audit trail for stock mutations."""

from __future__ import annotations

from django.db import DEFAULT_DB_ALIAS

from ..exceptions import NotFound
from ..models import Stock, StockHistory


class HistoryRecorder:
    """Write and read :class:`~billing.models.StockHistory` entries.

    There is no update or delete method; entries are written once
    per ledger mutation and never touched again.
    """

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def record(
        self,
        stock: Stock,
        action: str,
        cases: int,
        *,
        customer_name: str = "",
        reason: str = StockHistory.REASON_MANUAL,
        reference: str = "",
    ) -> StockHistory:
        entry = StockHistory(
            stock=stock,
            action=action,
            cases=cases,
            per_case_total=cases * stock.per_case,
            customer_name=customer_name or "",
            reason=reason,
            reference=reference or "",
        )
        entry.save(using=self.using)
        return entry

    def for_stock(self, stock_id) -> list[StockHistory]:
        """Return the entries for ``stock_id``, most recent first."""

        try:
            exists = Stock.objects.using(self.using).filter(pk=stock_id).exists()
        except (ValueError, TypeError) as exc:
            raise NotFound(f"Stock entry not found for ID: {stock_id}") from exc
        if not exists:
            raise NotFound(f"Stock entry not found for ID: {stock_id}")
        return list(
            StockHistory.objects.using(self.using)
            .filter(stock_id=stock_id)
            .select_related("stock", "stock__godown")
            .order_by("-date", "-id")
        )


__all__ = ["HistoryRecorder"]
