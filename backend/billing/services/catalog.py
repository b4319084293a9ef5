"""Price lookups against the product catalog."""

from __future__ import annotations

from decimal import Decimal

from django.db import DEFAULT_DB_ALIAS

from ..exceptions import NotFound
from ..models import CatalogProduct


class Catalog:
    """Resolve catalog entries by ``(product_type, productname, brand)``.

    Matching is case-insensitive, the way the stock screens have always joined
    stock rows to their price list.
    """

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def lookup(self, product_type: str, productname: str, brand: str) -> CatalogProduct:
        product = (
            CatalogProduct.objects.using(self.using)
            .filter(
                product_type__iexact=(product_type or "").strip(),
                productname__iexact=(productname or "").strip(),
                brand__iexact=(brand or "").strip(),
            )
            .first()
        )
        if product is None:
            raise NotFound(f"Product not found: {productname} ({brand})")
        return product

    def lookup_rate(self, product_type: str, productname: str, brand: str) -> Decimal:
        return Decimal(self.lookup(product_type, productname, brand).price)

    def rates_for(self, stocks) -> dict[int, Decimal]:
        """Return ``{stock.pk: rate}`` for ``stocks``, defaulting to zero when unpriced."""

        rates: dict[int, Decimal] = {}
        for stock in stocks:
            try:
                rates[stock.pk] = self.lookup_rate(stock.product_type, stock.productname, stock.brand)
            except NotFound:
                rates[stock.pk] = Decimal("0")
        return rates


__all__ = ["Catalog"]
