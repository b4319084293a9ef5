"""Stock, stock history and stock report API views."""

from django.conf import settings
from django.db.models import F, Sum
from django.db.models.functions import Coalesce
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from ..exceptions import BillingError, ValidationError
from ..models import Godown, Stock, StockHistory
from ..serializers import (
    GodownSerializer,
    OpenStockSerializer,
    StockHistorySerializer,
    StockMovementSerializer,
    StockSerializer,
)
from ..services import HistoryRecorder, StockLedger
from .utils import error_response


def _movement(request):
    serializer = StockMovementSerializer(data=request.data)
    if not serializer.is_valid():
        raise ValidationError('Cases must be a positive whole number.', detail=serializer.errors)
    return serializer.validated_data


class GodownViewSet(viewsets.ReadOnlyModelViewSet):
    """List the godowns stock can be held in."""

    permission_classes = [AllowAny]
    serializer_class = GodownSerializer
    queryset = Godown.objects.order_by('name')


class StockViewSet(viewsets.ReadOnlyModelViewSet):
    """Stock rows per godown plus the receive/take movements on them."""

    permission_classes = [AllowAny]
    serializer_class = StockSerializer

    def get_ledger(self):
        return StockLedger()

    def get_queryset(self):
        queryset = Stock.objects.select_related('godown').order_by('godown__name', 'product_type', 'productname')
        godown = self.request.query_params.get('godown')
        if godown:
            if godown.isdigit():
                queryset = queryset.filter(godown_id=int(godown))
            else:
                queryset = queryset.filter(godown__name__iexact=godown)
        in_stock = self.request.query_params.get('in_stock')
        if in_stock in {'1', 'true', 'yes'}:
            queryset = queryset.filter(current_cases__gt=0)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = OpenStockSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response(ValidationError(detail=serializer.errors))
        try:
            stock = self.get_ledger().open_stock(**serializer.validated_data)
        except BillingError as exc:
            return error_response(exc)
        return Response(StockSerializer(stock).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def receive(self, request, pk=None):
        try:
            data = _movement(request)
            stock = self.get_ledger().receive(pk, data['cases'])
        except BillingError as exc:
            return error_response(exc)
        return Response(StockSerializer(stock).data)

    @action(detail=True, methods=['post'])
    def take(self, request, pk=None):
        try:
            data = _movement(request)
            stock = self.get_ledger().deduct(
                pk,
                data['cases'],
                customer_name=data['customer_name'],
                reason=StockHistory.REASON_MANUAL,
            )
        except BillingError as exc:
            return error_response(exc)
        return Response(StockSerializer(stock).data)


class StockHistoryViewSet(viewsets.ViewSet):
    """Audit entries for one stock row, most recent first."""

    permission_classes = [AllowAny]

    def list(self, request, stock_pk=None):
        try:
            entries = HistoryRecorder().for_stock(stock_pk)
        except BillingError as exc:
            return error_response(exc)
        return Response(StockHistorySerializer(entries, many=True).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def stock_report(request):
    """Summarise stock by godown and product and flag products running low."""

    threshold = getattr(settings, 'LOW_STOCK_THRESHOLD', 3)
    raw_threshold = request.query_params.get('threshold')
    if raw_threshold:
        try:
            threshold = int(raw_threshold)
        except ValueError:
            return Response({'detail': 'Invalid threshold value.'}, status=400)

    quantity = Sum(F('current_cases') * F('per_case'))
    product_fields = ('product_type', 'productname', 'brand')

    rows = Stock.objects.select_related('godown').order_by('godown__name', 'product_type', 'productname')
    products = (
        Stock.objects.values(*product_fields)
        .annotate(total_cases=Sum('current_cases'), total_qty=quantity)
        .order_by('-total_cases', 'productname')
    )
    low_stock = [
        row for row in products.order_by('total_cases', 'productname') if row['total_cases'] < threshold
    ]
    godowns = (
        Stock.objects.values(godown_name=F('godown__name'))
        .annotate(total_cases=Sum('current_cases'))
        .order_by('-total_cases', 'godown_name')
    )
    grand_total = Stock.objects.aggregate(
        total_cases=Coalesce(Sum('current_cases'), 0),
        total_quantity=Coalesce(quantity, 0),
    )
    grand_total['unique_products'] = Stock.objects.values(*product_fields).distinct().count()

    return Response(
        {
            'rows': StockSerializer(rows, many=True).data,
            'low_stock': low_stock,
            'godown_summary': list(godowns),
            'product_summary': list(products),
            'grand_total': grand_total,
            'threshold': threshold,
        }
    )
