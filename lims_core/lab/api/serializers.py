# lims_core/lab/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from lims_core.lab.models import ReviewAction, VerificationStatus


class AnalyteSerializer(serializers.Serializer):
    name = serializers.CharField()
    value = serializers.CharField(allow_blank=True)
    unit = serializers.CharField(allow_blank=True)
    reference_range = serializers.CharField(allow_blank=True)
    is_abnormal = serializers.BooleanField()


class LabResultSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    order_id = serializers.UUIDField()
    test_name = serializers.CharField()
    analytes = AnalyteSerializer(many=True)
    verification_status = serializers.ChoiceField(choices=VerificationStatus.choices)
    technician_notes = serializers.CharField(allow_blank=True)
    is_critical = serializers.BooleanField()
    has_abnormal_values = serializers.BooleanField()
    verification_notes = serializers.CharField(allow_blank=True)
    verified_by = serializers.IntegerField(allow_null=True)
    verified_at = serializers.DateTimeField(allow_null=True)
    created_at = serializers.DateTimeField(allow_null=True)
    version = serializers.IntegerField()


class ReviewSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=ReviewAction.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class BulkReviewSerializer(ReviewSerializer):
    result_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False, max_length=500)


class VerificationAuditEntrySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    result_id = serializers.UUIDField()
    action = serializers.ChoiceField(choices=ReviewAction.choices)
    previous_status = serializers.ChoiceField(choices=VerificationStatus.choices)
    new_status = serializers.ChoiceField(choices=VerificationStatus.choices)
    actor = serializers.IntegerField(allow_null=True)
    timestamp = serializers.DateTimeField()
    comment = serializers.CharField(allow_blank=True)
    metadata = serializers.DictField()


class ReviewerPerformanceSerializer(serializers.Serializer):
    actor_user_id = serializers.IntegerField()
    approved = serializers.IntegerField()
    rejected = serializers.IntegerField()
    clarification_requested = serializers.IntegerField()
    total = serializers.IntegerField()
