# backend/billing/models.py
from datetime import date

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone


def normalise_name(value: str | None) -> str:
    """Lower-case ``value`` and join words with underscores (``"Main Store"`` → ``"main_store"``)."""

    return "_".join((value or "").strip().lower().split())


class Godown(models.Model):
    """Warehouse location holding stock."""

    name = models.CharField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.name = normalise_name(self.name)
        super().save(*args, **kwargs)


class CatalogProduct(models.Model):
    """Price list entry keyed by ``(product_type, productname, brand)``."""

    product_type = models.CharField(max_length=100)
    productname = models.CharField(max_length=255)
    brand = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    case_count = models.PositiveIntegerField(default=0)
    per_case = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["product_type", "productname"]
        constraints = [
            models.UniqueConstraint(
                fields=["product_type", "productname", "brand"],
                name="unique_catalog_product",
            )
        ]

    def __str__(self):
        return f"{self.productname} ({self.brand})"


class Stock(models.Model):
    """Cases of one catalog product held in one godown.

    ``current_cases`` and ``taken_cases`` are only ever changed through
    :class:`billing.services.stock_ledger.StockLedger`.
    """

    godown = models.ForeignKey(Godown, on_delete=models.CASCADE, related_name="stocks")
    product_type = models.CharField(max_length=100)
    productname = models.CharField(max_length=255)
    brand = models.CharField(max_length=100)
    per_case = models.PositiveIntegerField()
    current_cases = models.PositiveIntegerField(default=0)
    taken_cases = models.PositiveIntegerField(default=0)
    date_added = models.DateTimeField(default=timezone.now)
    last_taken_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["productname"]
        constraints = [
            models.UniqueConstraint(
                fields=["godown", "product_type", "productname", "brand"],
                name="unique_stock_entry",
            ),
            models.CheckConstraint(
                condition=models.Q(current_cases__gte=0),
                name="stock_current_cases_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(taken_cases__gte=0),
                name="stock_taken_cases_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.productname} ({self.brand}) @ {self.godown}"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        if "per_case" in field_names:
            instance._loaded_per_case = values[field_names.index("per_case")]
        return instance

    def save(self, *args, **kwargs):
        loaded = getattr(self, "_loaded_per_case", None)
        if self.pk and loaded is not None and self.per_case != loaded:
            raise ValueError("per_case cannot be changed once a stock row exists.")
        super().save(*args, **kwargs)
        self._loaded_per_case = self.per_case

    @property
    def total_quantity(self) -> int:
        return self.current_cases * self.per_case


class StockHistoryQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ValueError("Stock history entries are append-only.")

    def delete(self):
        raise ValueError("Stock history entries are append-only.")


class StockHistory(models.Model):
    """Append-only audit entry written for every stock mutation."""

    ACTION_ADDED = "added"
    ACTION_TAKEN = "taken"
    ACTION_CHOICES = (
        (ACTION_ADDED, "Added"),
        (ACTION_TAKEN, "Taken"),
    )

    REASON_RECEIPT = "receipt"
    REASON_MANUAL = "manual"
    REASON_BOOKING = "booking"
    REASON_BOOKING_EDIT = "booking_edit"
    REASON_BOOKING_DELETE = "booking_delete"
    REASON_CHALLAN = "challan"
    REASON_CHOICES = (
        (REASON_RECEIPT, "Stock received"),
        (REASON_MANUAL, "Manual adjustment"),
        (REASON_BOOKING, "Booking"),
        (REASON_BOOKING_EDIT, "Booking edited"),
        (REASON_BOOKING_DELETE, "Booking deleted"),
        (REASON_CHALLAN, "Challan"),
    )

    stock = models.ForeignKey(Stock, on_delete=models.CASCADE, related_name="history")
    action = models.CharField(max_length=10, choices=ACTION_CHOICES)
    cases = models.PositiveIntegerField()
    per_case_total = models.PositiveIntegerField()
    date = models.DateTimeField(default=timezone.now, db_index=True)
    customer_name = models.CharField(max_length=255, blank=True, default="")
    reason = models.CharField(max_length=20, choices=REASON_CHOICES, default=REASON_MANUAL)
    reference = models.CharField(max_length=50, blank=True, default="")

    objects = StockHistoryQuerySet.as_manager()

    class Meta:
        ordering = ["-date", "-id"]
        verbose_name_plural = "Stock history"

    def __str__(self):
        return f"{self.action} {self.cases} cases of stock #{self.stock_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Stock history entries are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Stock history entries are append-only.")


class BillSequence(models.Model):
    """Counter row behind bill number allocation."""

    name = models.CharField(max_length=50, primary_key=True)
    last_value = models.PositiveBigIntegerField(default=0)

    def __str__(self):
        return f"{self.name}: {self.last_value}"


class Challan(models.Model):
    """Outbound delivery note; stock is deducted when it is issued."""

    challan_number = models.CharField(max_length=50, unique=True)
    challan_date = models.DateField(default=date.today)
    customer_name = models.CharField(max_length=255)
    address = models.TextField(blank=True, default="")
    gstin = models.CharField(max_length=20, blank=True, default="")
    lr_number = models.CharField(max_length=50, blank=True, default="")
    agent_name = models.CharField(max_length=255, blank=True, default="")
    from_location = models.CharField(max_length=255, blank=True, default="")
    to_location = models.CharField(max_length=255, blank=True, default="")
    through = models.CharField(max_length=255, blank=True, default="")
    items = models.JSONField(default=list, encoder=DjangoJSONEncoder)
    total_cases = models.PositiveIntegerField(default=0)
    converted_to_bill = models.BooleanField(default=False)
    converted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.challan_number


class Booking(models.Model):
    """A finalized bill with a value snapshot of its line items."""

    bill_number = models.CharField(max_length=50, unique=True)
    bill_date = models.DateField(default=date.today)
    customer_name = models.CharField(max_length=255)
    address = models.TextField(blank=True, default="")
    gstin = models.CharField(max_length=20, blank=True, default="")
    lr_number = models.CharField(max_length=50, blank=True, default="")
    agent_name = models.CharField(max_length=255, blank=True, default="")
    from_location = models.CharField(max_length=255)
    to_location = models.CharField(max_length=255)
    through = models.CharField(max_length=255)
    stock_from = models.CharField(max_length=100, blank=True, default="")

    items = models.JSONField(default=list, encoder=DjangoJSONEncoder)
    settings = models.JSONField(default=dict, encoder=DjangoJSONEncoder)

    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    packing_charges = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    extra_taxable_value = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    taxable_value = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    additional_discount_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    net_before_round = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    round_off = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    grand_total = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_cases = models.PositiveIntegerField(default=0)

    from_challan = models.BooleanField(default=False)
    challan = models.ForeignKey(
        Challan,
        on_delete=models.PROTECT,
        related_name="bookings",
        null=True,
        blank=True,
    )
    challan_number = models.CharField(max_length=50, blank=True, default="")
    pdf_path = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.bill_number} for {self.customer_name}"
