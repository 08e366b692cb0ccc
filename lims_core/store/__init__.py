# lims_core/store/__init__.py
from __future__ import annotations

from django.conf import settings
from django.utils.module_loading import import_string

from lims_core.store.base import LabStore

DEFAULT_STORE_CLASS = "lims_core.store.orm.DjangoLabStore"


def get_store() -> LabStore:
    """Store instance selected by settings.LIMS_STORE_CLASS."""
    cls = import_string(getattr(settings, "LIMS_STORE_CLASS", DEFAULT_STORE_CLASS))
    return cls()


__all__ = ["LabStore", "get_store"]
