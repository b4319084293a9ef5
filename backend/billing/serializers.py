# backend/billing/serializers.py
from rest_framework import serializers

from .models import Booking, Challan, Godown, Stock, StockHistory


class LocationAliasMixin:
    """Accept the ``from``/``to`` keys used by the booking screens.

    ``from`` is a Python keyword, so the serializer fields are named
    ``from_location``/``to_location`` and the short keys are mapped onto them.
    """

    aliases = {'from': 'from_location', 'to': 'to_location'}

    def to_internal_value(self, data):
        if hasattr(data, 'items'):
            data = dict(data.items())
            for alias, field in self.aliases.items():
                if alias in data and field not in data:
                    data[field] = data.pop(alias)
        return super().to_internal_value(data)


class LineItemWriteSerializer(serializers.Serializer):
    # Older clients send the stock row id as ``id``.
    id = serializers.IntegerField(required=False, write_only=True)
    stock_id = serializers.IntegerField(required=False)
    product_type = serializers.CharField(required=False, allow_blank=True)
    productname = serializers.CharField(required=False, allow_blank=True)
    brand = serializers.CharField(required=False, allow_blank=True)
    cases = serializers.IntegerField(min_value=1)
    per_case = serializers.IntegerField(min_value=1, required=False)
    rate_per_box = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    discount_percent = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False, default=0
    )
    godown = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        legacy_id = attrs.pop('id', None)
        stock_id = attrs.get('stock_id') or legacy_id
        if not stock_id:
            raise serializers.ValidationError({'stock_id': 'This field is required.'})
        attrs['stock_id'] = stock_id
        return attrs


class BookingWriteSerializer(LocationAliasMixin, serializers.Serializer):
    """Validate a create/edit booking request before anything is locked."""

    customer_name = serializers.CharField()
    address = serializers.CharField(required=False, allow_blank=True, default='')
    gstin = serializers.CharField(required=False, allow_blank=True, default='')
    lr_number = serializers.CharField(required=False, allow_blank=True, default='')
    agent_name = serializers.CharField(required=False, allow_blank=True, default='')
    from_location = serializers.CharField()
    to_location = serializers.CharField()
    through = serializers.CharField()
    stock_from = serializers.CharField(required=False, allow_blank=True, default='')
    bill_date = serializers.DateField(required=False)
    challan_id = serializers.IntegerField(required=False, allow_null=True)
    items = LineItemWriteSerializer(many=True, required=False)

    apply_packing = serializers.BooleanField(required=False, default=True)
    packing_percent = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False, allow_null=True
    )
    extra_taxable_value = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=0, required=False, default=0
    )
    additional_discount = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False, default=0
    )
    apply_igst = serializers.BooleanField(required=False, default=False)
    apply_cgst_sgst = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs.get('challan_id') and attrs.get('items'):
            raise serializers.ValidationError(
                {'items': 'Bookings created from a challan take their items from the challan.'}
            )
        if not attrs.get('items') and not attrs.get('challan_id'):
            raise serializers.ValidationError({'items': 'At least one line item is required.'})
        if attrs.get('apply_igst') and attrs.get('apply_cgst_sgst'):
            raise serializers.ValidationError('IGST and CGST/SGST cannot both be applied.')
        return attrs


class ChallanWriteSerializer(LocationAliasMixin, serializers.Serializer):
    challan_number = serializers.CharField(required=False, allow_blank=True)
    challan_date = serializers.DateField(required=False)
    customer_name = serializers.CharField()
    address = serializers.CharField(required=False, allow_blank=True, default='')
    gstin = serializers.CharField(required=False, allow_blank=True, default='')
    lr_number = serializers.CharField(required=False, allow_blank=True, default='')
    agent_name = serializers.CharField(required=False, allow_blank=True, default='')
    from_location = serializers.CharField(required=False, allow_blank=True, default='')
    to_location = serializers.CharField(required=False, allow_blank=True, default='')
    through = serializers.CharField(required=False, allow_blank=True, default='')
    items = LineItemWriteSerializer(many=True, allow_empty=False)


class StockMovementSerializer(serializers.Serializer):
    cases = serializers.IntegerField(min_value=1)
    customer_name = serializers.CharField(required=False, allow_blank=True, default='')


class OpenStockSerializer(serializers.Serializer):
    godown_id = serializers.IntegerField()
    product_type = serializers.CharField()
    productname = serializers.CharField()
    brand = serializers.CharField()
    cases = serializers.IntegerField(min_value=1)


class GodownSerializer(serializers.ModelSerializer):
    class Meta:
        model = Godown
        fields = ['id', 'name']


class StockSerializer(serializers.ModelSerializer):
    godown_name = serializers.CharField(source='godown.name', read_only=True)
    total_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = Stock
        fields = [
            'id',
            'godown',
            'godown_name',
            'product_type',
            'productname',
            'brand',
            'per_case',
            'current_cases',
            'taken_cases',
            'total_quantity',
            'date_added',
            'last_taken_date',
        ]
        read_only_fields = fields


class StockHistorySerializer(serializers.ModelSerializer):
    productname = serializers.CharField(source='stock.productname', read_only=True)
    brand = serializers.CharField(source='stock.brand', read_only=True)
    product_type = serializers.CharField(source='stock.product_type', read_only=True)
    godown_name = serializers.CharField(source='stock.godown.name', read_only=True)

    class Meta:
        model = StockHistory
        fields = [
            'id',
            'stock',
            'action',
            'cases',
            'per_case_total',
            'date',
            'customer_name',
            'reason',
            'reference',
            'productname',
            'brand',
            'product_type',
            'godown_name',
        ]
        read_only_fields = fields


class BookingReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Booking
        fields = [
            'id',
            'bill_number',
            'bill_date',
            'customer_name',
            'address',
            'gstin',
            'lr_number',
            'agent_name',
            'from_location',
            'to_location',
            'through',
            'stock_from',
            'items',
            'settings',
            'subtotal',
            'packing_charges',
            'extra_taxable_value',
            'taxable_value',
            'additional_discount_amount',
            'tax_amount',
            'net_before_round',
            'round_off',
            'grand_total',
            'total_cases',
            'from_challan',
            'challan',
            'challan_number',
            'pdf_path',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ChallanReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Challan
        fields = [
            'id',
            'challan_number',
            'challan_date',
            'customer_name',
            'address',
            'gstin',
            'lr_number',
            'agent_name',
            'from_location',
            'to_location',
            'through',
            'items',
            'total_cases',
            'converted_to_bill',
            'converted_at',
            'created_at',
        ]
        read_only_fields = fields
