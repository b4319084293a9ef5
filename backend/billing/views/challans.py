"""Delivery challan API views."""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from ..exceptions import BillingError
from ..serializers import BookingReadSerializer, ChallanReadSerializer
from ..services import ChallanConverter
from .utils import error_response


class ChallanViewSet(viewsets.ViewSet):
    """Issue challans and convert them into bills."""

    permission_classes = [AllowAny]

    def get_converter(self):
        return ChallanConverter()

    def list(self, request):
        challans = self.get_converter().list_challans()
        pending = request.query_params.get('pending')
        if pending in {'1', 'true', 'yes'}:
            challans = challans.filter(converted_to_bill=False)
        return Response(ChallanReadSerializer(challans, many=True).data)

    def retrieve(self, request, pk=None):
        try:
            challan = self.get_converter().get(pk)
        except BillingError as exc:
            return error_response(exc)
        return Response(ChallanReadSerializer(challan).data)

    def create(self, request):
        try:
            challan = self.get_converter().issue(request.data)
        except BillingError as exc:
            return error_response(exc)
        return Response(ChallanReadSerializer(challan).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def convert(self, request, pk=None):
        try:
            booking = self.get_converter().convert(pk)
        except BillingError as exc:
            return error_response(exc)
        return Response(
            {
                'status': 'success',
                'message': 'Challan converted to bill.',
                'bill_number': booking.bill_number,
                'pdf_path': booking.pdf_path,
                'booking': BookingReadSerializer(booking).data,
            },
            status=status.HTTP_201_CREATED,
        )
