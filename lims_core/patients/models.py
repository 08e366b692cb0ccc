# lims_core/patients/models.py
from django.db import models
from lims_core.common.models import UUIDModel


class Patient(UUIDModel):
    """
    Minimal patient identity. Registration and demographics are owned by the
    patient-management front end; orders and invoices only need the reference.
    """
    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=32, blank=True)

    # lab-local medical record number
    mrn = models.CharField(max_length=64, unique=True)

    class Meta:
        db_table = "patients_patient"
        indexes = [
            models.Index(fields=["full_name"], name="patients_full_name_idx"),
            models.Index(fields=["phone"], name="patients_phone_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.mrn})"
