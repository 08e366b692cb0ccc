# lims_core/lab/apps.py
from __future__ import annotations

from django.apps import AppConfig


class LabConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "lims_core.lab"
    label = "lab"
