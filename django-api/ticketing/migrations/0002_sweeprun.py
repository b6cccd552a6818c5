import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("ticketing", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="SweepRun",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "trigger",
                    models.CharField(choices=[("scheduled", "Scheduled"), ("manual", "Manual")], max_length=20),
                ),
                ("ran_at", models.DateTimeField()),
                ("completed_count", models.PositiveIntegerField(default=0)),
                ("completed_events", models.JSONField(blank=True, default=list)),
                ("error", models.TextField(blank=True, default="")),
            ],
            options={
                "ordering": ["-ran_at"],
                "indexes": [models.Index(fields=["ran_at"], name="sweep_run_ran_at_idx")],
            },
        ),
    ]
