import datetime

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="BillSequence",
            fields=[
                ("name", models.CharField(max_length=50, primary_key=True, serialize=False)),
                ("last_value", models.PositiveBigIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name="CatalogProduct",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("product_type", models.CharField(max_length=100)),
                ("productname", models.CharField(max_length=255)),
                ("brand", models.CharField(max_length=100)),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("case_count", models.PositiveIntegerField(default=0)),
                ("per_case", models.PositiveIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["product_type", "productname"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product_type", "productname", "brand"),
                        name="unique_catalog_product",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Challan",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("challan_number", models.CharField(max_length=50, unique=True)),
                ("challan_date", models.DateField(default=datetime.date.today)),
                ("customer_name", models.CharField(max_length=255)),
                ("address", models.TextField(blank=True, default="")),
                ("gstin", models.CharField(blank=True, default="", max_length=20)),
                ("lr_number", models.CharField(blank=True, default="", max_length=50)),
                ("agent_name", models.CharField(blank=True, default="", max_length=255)),
                ("from_location", models.CharField(blank=True, default="", max_length=255)),
                ("to_location", models.CharField(blank=True, default="", max_length=255)),
                ("through", models.CharField(blank=True, default="", max_length=255)),
                ("items", models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("total_cases", models.PositiveIntegerField(default=0)),
                ("converted_to_bill", models.BooleanField(default=False)),
                ("converted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="Godown",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("bill_number", models.CharField(max_length=50, unique=True)),
                ("bill_date", models.DateField(default=datetime.date.today)),
                ("customer_name", models.CharField(max_length=255)),
                ("address", models.TextField(blank=True, default="")),
                ("gstin", models.CharField(blank=True, default="", max_length=20)),
                ("lr_number", models.CharField(blank=True, default="", max_length=50)),
                ("agent_name", models.CharField(blank=True, default="", max_length=255)),
                ("from_location", models.CharField(max_length=255)),
                ("to_location", models.CharField(max_length=255)),
                ("through", models.CharField(max_length=255)),
                ("stock_from", models.CharField(blank=True, default="", max_length=100)),
                ("items", models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("settings", models.JSONField(default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("subtotal", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("packing_charges", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("extra_taxable_value", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("taxable_value", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("additional_discount_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("net_before_round", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("round_off", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("grand_total", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("total_cases", models.PositiveIntegerField(default=0)),
                ("from_challan", models.BooleanField(default=False)),
                ("challan_number", models.CharField(blank=True, default="", max_length=50)),
                ("pdf_path", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "challan",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="billing.challan",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="Stock",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("product_type", models.CharField(max_length=100)),
                ("productname", models.CharField(max_length=255)),
                ("brand", models.CharField(max_length=100)),
                ("per_case", models.PositiveIntegerField()),
                ("current_cases", models.PositiveIntegerField(default=0)),
                ("taken_cases", models.PositiveIntegerField(default=0)),
                ("date_added", models.DateTimeField(default=django.utils.timezone.now)),
                ("last_taken_date", models.DateTimeField(blank=True, null=True)),
                (
                    "godown",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stocks",
                        to="billing.godown",
                    ),
                ),
            ],
            options={
                "ordering": ["productname"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("godown", "product_type", "productname", "brand"),
                        name="unique_stock_entry",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("current_cases__gte", 0)),
                        name="stock_current_cases_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("taken_cases__gte", 0)),
                        name="stock_taken_cases_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[("added", "Added"), ("taken", "Taken")], max_length=10)),
                ("cases", models.PositiveIntegerField()),
                ("per_case_total", models.PositiveIntegerField()),
                ("date", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("customer_name", models.CharField(blank=True, default="", max_length=255)),
                (
                    "reason",
                    models.CharField(
                        choices=[
                            ("receipt", "Stock received"),
                            ("manual", "Manual adjustment"),
                            ("booking", "Booking"),
                            ("booking_edit", "Booking edited"),
                            ("booking_delete", "Booking deleted"),
                            ("challan", "Challan"),
                        ],
                        default="manual",
                        max_length=20,
                    ),
                ),
                ("reference", models.CharField(blank=True, default="", max_length=50)),
                (
                    "stock",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="billing.stock",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Stock history",
                "ordering": ["-date", "-id"],
            },
        ),
    ]
