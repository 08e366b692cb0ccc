# lims_core/patients/admin.py
from django.contrib import admin

from lims_core.patients.models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ("id", "full_name", "mrn", "phone", "gender", "created_at")
    search_fields = ("full_name", "mrn", "phone", "email")
    ordering = ("-created_at",)
