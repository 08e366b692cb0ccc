# lims_core/lab/api/filters.py
from __future__ import annotations

import django_filters

from lims_core.lab.models import LabResult, VerificationStatus


class LabResultFilter(django_filters.FilterSet):
    """Verification queue filters: ?status=ENTERED&is_critical=true&order=<uuid>"""
    status = django_filters.ChoiceFilter(field_name="verification_status", choices=VerificationStatus.choices)
    order = django_filters.UUIDFilter(field_name="order_id")
    is_critical = django_filters.BooleanFilter(field_name="is_critical")
    entered_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    entered_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lt")

    class Meta:
        model = LabResult
        fields = ["status", "order", "is_critical", "entered_after", "entered_before"]
