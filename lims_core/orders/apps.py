# lims_core/orders/apps.py
from __future__ import annotations

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "lims_core.orders"
    label = "orders"
