# backend/billing/admin.py

from django.contrib import admin

from .models import BillSequence, Booking, CatalogProduct, Challan, Godown, Stock, StockHistory

admin.site.register(Godown)
admin.site.register(CatalogProduct)
admin.site.register(BillSequence)


@admin.register(Stock)
class StockAdmin(admin.ModelAdmin):
    list_display = ('productname', 'brand', 'product_type', 'godown', 'current_cases', 'taken_cases', 'per_case')
    list_filter = ('godown', 'product_type')
    search_fields = ('productname', 'brand')
    # Case counts only change through the stock ledger.
    readonly_fields = ('current_cases', 'taken_cases', 'last_taken_date')


@admin.register(StockHistory)
class StockHistoryAdmin(admin.ModelAdmin):
    list_display = ('date', 'stock', 'action', 'cases', 'per_case_total', 'reason', 'reference', 'customer_name')
    list_filter = ('action', 'reason')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ('bill_number', 'bill_date', 'customer_name', 'grand_total', 'from_challan')
    search_fields = ('bill_number', 'customer_name')
    readonly_fields = [field.name for field in Booking._meta.fields]


@admin.register(Challan)
class ChallanAdmin(admin.ModelAdmin):
    list_display = ('challan_number', 'challan_date', 'customer_name', 'total_cases', 'converted_to_bill')
    list_filter = ('converted_to_bill',)
    readonly_fields = [field.name for field in Challan._meta.fields]
