# lims_core/lab/api/views.py
from __future__ import annotations

from django.utils.dateparse import parse_date
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from lims_core.common.api.pagination import paginate
from lims_core.common.idempotency import get_key, load_response, save_response
from lims_core.lab.api.filters import LabResultFilter
from lims_core.lab.api.serializers import (
    BulkReviewSerializer,
    LabResultSerializer,
    ReviewerPerformanceSerializer,
    ReviewSerializer,
    VerificationAuditEntrySerializer,
)
from lims_core.lab.models import LabResult
from lims_core.lab.selectors import results_queue_qs
from lims_core.lab.services import VerificationService
from lims_core.store import get_store
from lims_core.store.orm import result_record


class LabResultViewSet(viewsets.GenericViewSet):
    """
    Verification queue and review actions.
    """
    serializer_class = LabResultSerializer
    queryset = LabResult.objects.none()
    filterset_class = LabResultFilter
    ordering_fields = ["created_at", "is_critical"]

    @extend_schema(tags=["Lab Verification"], responses={200: LabResultSerializer(many=True)})
    def list(self, request):
        qs = self.filter_queryset(results_queue_qs())
        return paginate(request, qs, LabResultSerializer, transform=result_record)

    @extend_schema(tags=["Lab Verification"], responses={200: LabResultSerializer})
    def retrieve(self, request, pk=None):
        result = get_store().load_result(pk)
        return Response(LabResultSerializer(result).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Lab Verification"], request=ReviewSerializer, responses={200: LabResultSerializer})
    @action(detail=True, methods=["post"], url_path="review")
    def review(self, request, pk=None):
        idem = get_key(request)
        if idem:
            cached = load_response(request.user.id, request.method, request.path, idem)
            if cached is not None:
                return Response(cached, status=status.HTTP_200_OK)

        ser = ReviewSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = VerificationService.review_result(
            result_id=pk,
            action=ser.validated_data["action"],
            notes=ser.validated_data.get("notes", ""),
            actor_user_id=request.user.id,
        )

        out = LabResultSerializer(result).data
        if idem:
            save_response(request.user.id, request.method, request.path, idem, out)
        return Response(out, status=status.HTTP_200_OK)

    @extend_schema(tags=["Lab Verification"], responses={200: VerificationAuditEntrySerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request, pk=None):
        entries = VerificationService.verification_history(result_id=pk)
        return Response(VerificationAuditEntrySerializer(entries, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Lab Verification"], request=BulkReviewSerializer, responses={200: LabResultSerializer(many=True)})
    @action(detail=False, methods=["post"], url_path="bulk-review")
    def bulk_review(self, request):
        ser = BulkReviewSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        results = VerificationService.bulk_review(
            result_ids=ser.validated_data["result_ids"],
            action=ser.validated_data["action"],
            notes=ser.validated_data.get("notes", ""),
            actor_user_id=request.user.id,
        )
        return Response(LabResultSerializer(results, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Lab Verification"], request=None, responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["post"], url_path="auto-approve")
    def auto_approve(self, request):
        approved = VerificationService.auto_approve_normal(actor_user_id=request.user.id)
        return Response(
            {"approved_count": len(approved), "result_ids": [str(r.id) for r in approved]},
            status=status.HTTP_200_OK,
        )


class VerificationPerformanceView(APIView):
    @extend_schema(
        tags=["Lab Verification"],
        responses={200: ReviewerPerformanceSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="start", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="end", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=True),
        ],
    )
    def get(self, request):
        dates = {}
        for name in ("start", "end"):
            raw = request.query_params.get(name) or ""
            try:
                dates[name] = parse_date(raw)
            except ValueError:
                dates[name] = None
            if dates[name] is None:
                raise DRFValidationError({name: ["Required, YYYY-MM-DD."]})

        rows = VerificationService.reviewer_performance(start=dates["start"], end=dates["end"])
        return Response(ReviewerPerformanceSerializer(rows, many=True).data, status=status.HTTP_200_OK)
