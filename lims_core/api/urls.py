# lims_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from lims_core.audit.api.views import AuditEventViewSet
from lims_core.billing.api.views import (
    CashReconciliationView,
    InvoicePaymentsView,
    InvoiceTotalsView,
    InvoiceViewSet,
    PaymentSummaryView,
)
from lims_core.lab.api.views import LabResultViewSet, VerificationPerformanceView
from lims_core.orders.api.views import OrderViewSet, VisitSessionView

router = DefaultRouter()

router.register(r"orders", OrderViewSet, basename="orders")
router.register(r"billing/invoices", InvoiceViewSet, basename="billing-invoices")
router.register(r"lab/results", LabResultViewSet, basename="lab-results")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    path("sessions/<str:session_id>/", VisitSessionView.as_view(), name="visit-session"),
    path(
        "billing/invoices/<uuid:invoice_id>/payments/",
        InvoicePaymentsView.as_view(),
        name="billing-invoice-payments",
    ),
    path("billing/totals/", InvoiceTotalsView.as_view(), name="billing-totals"),
    path("billing/reports/payments/", PaymentSummaryView.as_view(), name="billing-payment-summary"),
    path(
        "billing/reports/cash-reconciliation/",
        CashReconciliationView.as_view(),
        name="billing-cash-reconciliation",
    ),
    path("lab/verification/performance/", VerificationPerformanceView.as_view(), name="lab-verification-performance"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
