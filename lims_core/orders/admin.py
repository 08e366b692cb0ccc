# lims_core/orders/admin.py
from __future__ import annotations

from django.contrib import admin

from lims_core.orders.models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("test_code", "test_name", "price", "position", "created_at")
    readonly_fields = ("created_at",)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "patient",
        "visit_session_id",
        "order_type",
        "status",
        "total_amount",
        "can_add_tests",
        "locked_at",
        "created_at",
    )
    list_filter = ("order_type", "status", "can_add_tests")
    search_fields = ("id", "visit_session_id", "patient__full_name", "patient__mrn")
    ordering = ("-created_at",)
    readonly_fields = ("created_at", "updated_at", "version")
    list_select_related = ("patient",)
    inlines = [OrderItemInline]
