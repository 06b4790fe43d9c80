"""Print-order URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.print_orders.views import (
    AdminPrintOrderViewSet,
    MixamWebhookView,
    PrintOrderViewSet,
)

router = DefaultRouter(trailing_slash=True)
router.register("print-orders", PrintOrderViewSet, basename="print-order")
router.register(
    "admin/print-orders", AdminPrintOrderViewSet, basename="admin-print-order"
)

urlpatterns = [
    path("webhooks/mixam/", MixamWebhookView.as_view(), name="mixam-webhook"),
    *router.urls,
]
