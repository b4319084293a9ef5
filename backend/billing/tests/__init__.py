import shutil
import tempfile
from decimal import Decimal

from django.test import override_settings

from ..exceptions import RenderError
from ..models import CatalogProduct, Godown, Stock
from ..services import StockLedger


def create_godown(name: str = "Main Store"):
    return Godown.objects.create(name=name)


def create_stock(
    godown,
    *,
    productname: str = "Flower Pot",
    brand: str = "Standard",
    product_type: str = "crackers",
    per_case: int = 12,
    cases: int = 10,
    price: str = "100.00",
):
    """Create a catalog entry and receive ``cases`` of it into ``godown``."""

    CatalogProduct.objects.get_or_create(
        product_type=product_type,
        productname=productname,
        brand=brand,
        defaults={"price": Decimal(price), "per_case": per_case},
    )
    if cases:
        return StockLedger().open_stock(godown.pk, product_type, productname, brand, cases)
    return Stock.objects.create(
        godown=godown,
        product_type=product_type,
        productname=productname,
        brand=brand,
        per_case=per_case,
    )


def booking_payload(*items, **overrides):
    """Build a booking request for ``(stock, cases, rate)`` tuples."""

    payload = {
        "customer_name": "Ravi Traders",
        "address": "12 Market Road",
        "gstin": "33ABCDE1234F1Z5",
        "agent_name": "Direct",
        "from": "Sivakasi",
        "to": "Chennai",
        "through": "KPN Transport",
        "items": [
            {"stock_id": stock.pk, "cases": cases, "rate_per_box": rate}
            for stock, cases, rate in items
        ],
    }
    payload.update(overrides)
    return payload


class FailingDocuments:
    """Document generator stand-in whose renders always fail."""

    def render(self, invoice):
        raise RenderError(f"Failed to generate invoice for {invoice['bill_number']}")

    def discard(self, pdf_path):
        pass


class DocumentRootMixin:
    """Point rendered invoices at a temporary directory for each test."""

    def setUp(self):
        super().setUp()
        self.document_root = tempfile.mkdtemp(prefix="bills-")
        self.addCleanup(shutil.rmtree, self.document_root, ignore_errors=True)
        settings_override = override_settings(BOOKING_DOCUMENT_ROOT=self.document_root)
        settings_override.enable()
        self.addCleanup(settings_override.disable)
