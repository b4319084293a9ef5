"""URL routing for the billing API."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_nested import routers

from .views.bookings import BookingViewSet, customer_list
from .views.challans import ChallanViewSet
from .views.stock import GodownViewSet, StockHistoryViewSet, StockViewSet, stock_report

router = DefaultRouter()
router.register(r'bookings', BookingViewSet, basename='booking')
router.register(r'challans', ChallanViewSet, basename='challan')
router.register(r'godowns', GodownViewSet, basename='godown')
router.register(r'stock', StockViewSet, basename='stock')

stock_router = routers.NestedSimpleRouter(router, r'stock', lookup='stock')
stock_router.register(r'history', StockHistoryViewSet, basename='stock-history')

urlpatterns = [
    path('customers/', customer_list, name='customer-list'),
    path('reports/stock/', stock_report, name='stock-report'),
    path('', include(router.urls)),
    path('', include(stock_router.urls)),
]
