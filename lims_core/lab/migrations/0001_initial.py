from django.db import migrations, models
import django.db.models.deletion
import uuid


STATUS_CHOICES = [
    ("ENTERED", "Entered"),
    ("VERIFIED", "Verified"),
    ("REJECTED", "Rejected"),
    ("CLARIFICATION_REQUESTED", "Clarification Requested"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="LabResult",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("version", models.PositiveIntegerField(default=1)),
                ("test_name", models.CharField(max_length=255)),
                ("analytes", models.JSONField(blank=True, default=list)),
                (
                    "verification_status",
                    models.CharField(choices=STATUS_CHOICES, db_index=True, default="ENTERED", max_length=32),
                ),
                ("technician_notes", models.TextField(blank=True)),
                ("is_critical", models.BooleanField(default=False)),
                ("verification_notes", models.TextField(blank=True)),
                ("verified_by_user_id", models.IntegerField(blank=True, null=True)),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="results",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "lab_result",
                "indexes": [
                    models.Index(fields=["verification_status", "created_at"], name="lab_result_queue_idx"),
                    models.Index(fields=["order"], name="lab_result_order_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="VerificationAuditEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("approve", "Approve"),
                            ("reject", "Reject"),
                            ("clarify", "Request Clarification"),
                        ],
                        max_length=16,
                    ),
                ),
                ("previous_status", models.CharField(choices=STATUS_CHOICES, max_length=32)),
                ("new_status", models.CharField(choices=STATUS_CHOICES, max_length=32)),
                ("actor_user_id", models.IntegerField(blank=True, db_index=True, null=True)),
                ("timestamp", models.DateTimeField(db_index=True)),
                ("comment", models.TextField(blank=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "result",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="audit_entries",
                        to="lab.labresult",
                    ),
                ),
            ],
            options={
                "db_table": "lab_verification_audit",
                "indexes": [
                    models.Index(fields=["result", "timestamp"], name="lab_audit_result_ts_idx"),
                ],
            },
        ),
    ]
