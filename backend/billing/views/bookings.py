"""Booking API views."""

from django.http import FileResponse
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from ..exceptions import BillingError, NotFound
from ..serializers import BookingReadSerializer
from ..services import BookingCoordinator
from .utils import error_response


class BookingViewSet(viewsets.ViewSet):
    """Create, edit and delete bookings through :class:`BookingCoordinator`.

    Every write goes through the coordinator so stock, history and the bill
    are changed together or not at all.
    """

    permission_classes = [AllowAny]

    def get_coordinator(self):
        return BookingCoordinator()

    def list(self, request):
        bookings = self.get_coordinator().list_bookings()
        customer = request.query_params.get('customer')
        if customer:
            bookings = bookings.filter(customer_name__icontains=customer)
        return Response(BookingReadSerializer(bookings, many=True).data)

    def retrieve(self, request, pk=None):
        try:
            booking = self.get_coordinator().get(pk)
        except BillingError as exc:
            return error_response(exc)
        return Response(BookingReadSerializer(booking).data)

    def create(self, request):
        try:
            booking = self.get_coordinator().create(request.data)
        except BillingError as exc:
            return error_response(exc)
        return Response(BookingReadSerializer(booking).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        try:
            booking = self.get_coordinator().edit(pk, request.data)
        except BillingError as exc:
            return error_response(exc)
        return Response(BookingReadSerializer(booking).data)

    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    def destroy(self, request, pk=None):
        try:
            self.get_coordinator().delete(pk)
        except BillingError as exc:
            return error_response(exc)
        return Response({'status': 'success', 'message': 'Booking deleted.'})

    @action(detail=True, methods=['get'])
    def invoice_pdf(self, request, pk=None):
        """Return the stored invoice document for a booking."""

        coordinator = self.get_coordinator()
        try:
            booking = coordinator.get(pk)
            path = coordinator.documents.path_for(booking.pdf_path) if booking.pdf_path else None
            if path is None or not path.exists():
                raise NotFound(f"No invoice document stored for {booking.bill_number}.")
        except BillingError as exc:
            return error_response(exc)

        response = FileResponse(path.open('rb'), content_type='application/pdf')
        response['Content-Disposition'] = f'inline; filename="{path.name}"'
        return response


@api_view(['GET'])
@permission_classes([AllowAny])
def customer_list(request):
    """Customers seen on earlier bookings, for pre-filling the booking form."""

    return Response(BookingCoordinator().customers())
