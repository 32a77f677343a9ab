from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Room",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=20, unique=True)),
                ("room_type", models.CharField(max_length=50)),
                ("price_per_night", models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("is_available", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ("number", "id"),
            },
        ),
        migrations.CreateModel(
            name="Reservation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("guest_name", models.CharField(max_length=150)),
                ("guest_email", models.CharField(max_length=254)),
                ("check_in", models.DateField()),
                ("check_out", models.DateField()),
                ("total_price", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("CANCELLED", "Cancelled")], default="ACTIVE", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("room", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="reservations", to="room_booking.room")),
            ],
            options={
                "ordering": ("id",),
                "indexes": [models.Index(fields=["room", "status"], name="reservation_room_status_idx")],
                "constraints": [models.CheckConstraint(condition=models.Q(("check_out__gt", models.F("check_in"))), name="reservation_checkout_after_checkin")],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("method", models.CharField(choices=[("Credit Card", "Credit Card"), ("Debit Card", "Debit Card"), ("Cash", "Cash")], max_length=20)),
                ("payment_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("reservation", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="room_booking.reservation")),
            ],
            options={
                "ordering": ("id",),
            },
        ),
    ]
