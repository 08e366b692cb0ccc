# lims_core/lab/admin.py
from __future__ import annotations

from django.contrib import admin

from lims_core.lab.models import LabResult, VerificationAuditEntry


@admin.register(LabResult)
class LabResultAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "test_name", "verification_status", "is_critical", "verified_by_user_id", "verified_at")
    list_filter = ("verification_status", "is_critical")
    search_fields = ("id", "test_name", "order__id")
    ordering = ("-created_at",)
    readonly_fields = ("created_at", "updated_at", "version", "verified_at", "verified_by_user_id")


@admin.register(VerificationAuditEntry)
class VerificationAuditEntryAdmin(admin.ModelAdmin):
    list_display = ("result", "action", "previous_status", "new_status", "actor_user_id", "timestamp")
    list_filter = ("action", "new_status")
    ordering = ("-timestamp",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
