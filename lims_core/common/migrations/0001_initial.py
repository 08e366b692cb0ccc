from django.db import migrations, models
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="IdempotencyRecord",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_id", models.BigIntegerField(db_index=True)),
                ("method", models.CharField(db_index=True, max_length=16)),
                ("path", models.CharField(db_index=True, max_length=255)),
                ("idempotency_key", models.CharField(db_index=True, max_length=255)),
                ("status_code", models.PositiveIntegerField(default=200)),
                ("response_data", models.JSONField(default=dict)),
            ],
            options={
                "db_table": "common_idempotency_record",
            },
        ),
        migrations.AddConstraint(
            model_name="idempotencyrecord",
            constraint=models.UniqueConstraint(
                fields=("user_id", "method", "path", "idempotency_key"),
                name="uq_idempo_user_method_path_key",
            ),
        ),
    ]
