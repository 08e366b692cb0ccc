# lims_core/billing/admin.py
from django.contrib import admin

from lims_core.billing.models import Invoice, InvoiceLine, Payment


class InvoiceLineInline(admin.TabularInline):
    model = InvoiceLine
    extra = 0
    fields = ("test_code", "test_name", "quantity", "unit_price", "line_total")
    readonly_fields = fields


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("amount", "method", "reference", "paid_on", "recorded_by_user_id", "idempotency_key")
    readonly_fields = fields


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "patient", "status", "total", "amount_paid", "balance_due", "created_at")
    list_filter = ("status",)
    search_fields = ("invoice_number", "id", "patient__full_name", "patient__mrn")
    ordering = ("-created_at",)
    readonly_fields = ("created_at", "updated_at", "version", "finalized_at", "paid_at")
    inlines = [InvoiceLineInline, PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("invoice", "amount", "method", "paid_on", "reference", "recorded_by_user_id")
    list_filter = ("method", "paid_on")
    search_fields = ("reference", "invoice__invoice_number")
    ordering = ("-paid_on",)
