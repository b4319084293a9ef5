"""Expose public billing API views."""

from .bookings import BookingViewSet, customer_list
from .challans import ChallanViewSet
from .stock import GodownViewSet, StockHistoryViewSet, StockViewSet, stock_report

__all__ = [
    'BookingViewSet',
    'ChallanViewSet',
    'GodownViewSet',
    'StockHistoryViewSet',
    'StockViewSet',
    'customer_list',
    'stock_report',
]
