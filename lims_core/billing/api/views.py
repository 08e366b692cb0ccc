# lims_core/billing/api/views.py
from __future__ import annotations

from uuid import UUID

from django.utils.dateparse import parse_date
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from lims_core.billing.api.serializers import (
    CashReconciliationRequestSerializer,
    CashReconciliationSerializer,
    InvoiceCreateSerializer,
    InvoiceDiscountSerializer,
    InvoiceLineCreateSerializer,
    InvoiceSerializer,
    InvoiceTotalsSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
    PaymentSummarySerializer,
    TotalsRequestSerializer,
)
from lims_core.billing.models import Invoice, InvoiceStatus
from lims_core.billing.selectors import invoices_filtered
from lims_core.billing.services import BillingReportService, InvoiceService, PaymentService
from lims_core.common.api.pagination import paginate
from lims_core.common.idempotency import get_key, load_response, save_response
from lims_core.store import get_store
from lims_core.store.orm import invoice_record


def _uuid_or_none(value: str | None, field_name: str) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise DRFValidationError({field_name: ["Invalid UUID"]})


def _date_param(request, name: str):
    raw = request.query_params.get(name)
    if not raw:
        raise DRFValidationError({name: ["This query parameter is required (YYYY-MM-DD)."]})
    try:
        value = parse_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise DRFValidationError({name: ["Invalid date, expected YYYY-MM-DD."]})
    return value


class InvoiceViewSet(viewsets.GenericViewSet):
    """
    Invoices:
    - list/retrieve
    - create draft from an order
    - lines / discount while DRAFT
    - finalize
    """
    serializer_class = InvoiceSerializer
    queryset = Invoice.objects.none()

    @extend_schema(
        tags=["Billing"],
        responses={200: InvoiceSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="order", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="status",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                enum=[s.value for s in InvoiceStatus],
            ),
        ],
    )
    def list(self, request):
        qs = invoices_filtered(
            patient_id=_uuid_or_none(request.query_params.get("patient"), "patient"),
            order_id=_uuid_or_none(request.query_params.get("order"), "order"),
            status=request.query_params.get("status") or None,
        ).prefetch_related("lines", "payments")
        return paginate(request, qs, InvoiceSerializer, transform=invoice_record)

    @extend_schema(tags=["Billing"], responses={200: InvoiceSerializer})
    def retrieve(self, request, pk=None):
        inv = get_store().load_invoice(pk)
        return Response(InvoiceSerializer(inv).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Billing"], request=InvoiceCreateSerializer, responses={201: InvoiceSerializer})
    def create(self, request):
        ser = InvoiceCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        inv = InvoiceService.create_from_order(
            order_id=ser.validated_data["order_id"],
            discount=ser.validated_data["discount"],
            tax_rate=ser.validated_data.get("tax_rate"),
            actor_user_id=request.user.id,
        )
        return Response(InvoiceSerializer(inv).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Billing"], request=InvoiceLineCreateSerializer, responses={201: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="lines")
    def lines(self, request, pk=None):
        ser = InvoiceLineCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        inv = InvoiceService.add_line(
            invoice_id=pk,
            test_name=data["test_name"],
            test_code=data.get("test_code", ""),
            quantity=data["quantity"],
            unit_price=data["unit_price"],
        )
        return Response(InvoiceSerializer(inv).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Billing"], request=InvoiceDiscountSerializer, responses={200: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="discount")
    def discount(self, request, pk=None):
        ser = InvoiceDiscountSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        inv = InvoiceService.set_discount(
            invoice_id=pk,
            discount=ser.validated_data["discount"],
            tax_rate=ser.validated_data.get("tax_rate"),
        )
        return Response(InvoiceSerializer(inv).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Billing"], request=None, responses={200: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="finalize")
    def finalize(self, request, pk=None):
        inv = InvoiceService.finalize(invoice_id=pk, actor_user_id=request.user.id)
        return Response(InvoiceSerializer(inv).data, status=status.HTTP_200_OK)


class InvoicePaymentsView(APIView):
    """
    /billing/invoices/<invoice_id>/payments/
    - GET list payments
    - POST record a payment (Idempotency-Key doubles as the ledger token)
    """

    @extend_schema(tags=["Billing"], responses={200: PaymentSerializer(many=True)})
    def get(self, request, invoice_id: UUID):
        inv = get_store().load_invoice(invoice_id)
        payments = sorted(inv.payments, key=lambda p: p.created_at, reverse=True)
        return Response(PaymentSerializer(payments, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Billing"], request=PaymentCreateSerializer, responses={201: InvoiceSerializer})
    def post(self, request, invoice_id: UUID):
        idem = get_key(request)
        if idem:
            cached = load_response(request.user.id, request.method, request.path, idem)
            if cached is not None:
                return Response(cached, status=status.HTTP_201_CREATED)

        ser = PaymentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        inv = PaymentService.record_payment(
            invoice_id=invoice_id,
            amount=data["amount"],
            method=data.get("method"),
            reference=data.get("reference", ""),
            paid_on=data.get("paid_on"),
            recorded_by_user_id=getattr(request.user, "id", None),
            idempotency_key=idem,
        )

        out = InvoiceSerializer(inv).data
        if idem:
            save_response(request.user.id, request.method, request.path, idem, out, status.HTTP_201_CREATED)
        return Response(out, status=status.HTTP_201_CREATED)


class InvoiceTotalsView(APIView):
    """
    /billing/totals/
    Stateless quote: totals for a basket of (unit_price, quantity) items.
    """

    @extend_schema(tags=["Billing"], request=TotalsRequestSerializer, responses={200: InvoiceTotalsSerializer})
    def post(self, request):
        ser = TotalsRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        totals = InvoiceService.compute_invoice_totals(
            items=data["items"],
            discount=data["discount"],
            tax_rate=data["tax_rate"],
        )
        return Response(InvoiceTotalsSerializer(totals).data, status=status.HTTP_200_OK)


class PaymentSummaryView(APIView):
    @extend_schema(
        tags=["Billing Reports"],
        responses={200: PaymentSummarySerializer},
        parameters=[
            OpenApiParameter(name="start", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="end", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=True),
        ],
    )
    def get(self, request):
        summary = BillingReportService.payment_summary(
            start=_date_param(request, "start"),
            end=_date_param(request, "end"),
        )
        return Response(PaymentSummarySerializer(summary).data, status=status.HTTP_200_OK)


class CashReconciliationView(APIView):
    @extend_schema(
        tags=["Billing Reports"],
        request=CashReconciliationRequestSerializer,
        responses={200: CashReconciliationSerializer},
    )
    def post(self, request):
        ser = CashReconciliationRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = BillingReportService.reconcile_cash(
            on_date=ser.validated_data["on_date"],
            counted_amount=ser.validated_data["counted_amount"],
        )
        return Response(CashReconciliationSerializer(result).data, status=status.HTTP_200_OK)
