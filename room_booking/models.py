from decimal import Decimal

from django.db import models
from django.core.validators import MinValueValidator


class Room(models.Model):
    number = models.CharField(max_length=20, unique=True)
    room_type = models.CharField(max_length=50)
    price_per_night = models.DecimalField(
        max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0'))]
    )
    # Cached hint only; the reservations table decides date-specific availability.
    is_available = models.BooleanField(default=True)

    class Meta:
        ordering = ('number', 'id')

    def __str__(self):
        return f"Room {self.number} ({self.room_type})"


class Reservation(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "ACTIVE", "Active"
        CANCELLED = "CANCELLED", "Cancelled"

    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name="reservations")
    guest_name = models.CharField(max_length=150)
    guest_email = models.CharField(max_length=254)
    check_in = models.DateField()
    check_out = models.DateField()  # exclusive
    total_price = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))]
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('id',)
        indexes = [
            models.Index(fields=['room', 'status'], name='reservation_room_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out__gt=models.F('check_in')),
                name='reservation_checkout_after_checkin',
            ),
        ]

    def __str__(self):
        return f"Reservation #{self.pk} room={self.room_id} {self.check_in}..{self.check_out}"

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE

    @property
    def nights(self):
        return (self.check_out - self.check_in).days


class Payment(models.Model):
    class Method(models.TextChoices):
        CREDIT_CARD = "Credit Card"
        DEBIT_CARD = "Debit Card"
        CASH = "Cash"

    reservation = models.ForeignKey(Reservation, on_delete=models.PROTECT, related_name="payments")
    amount = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))]
    )
    method = models.CharField(max_length=20, choices=Method.choices)
    payment_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('id',)

    def __str__(self):
        return f"Payment #{self.pk} for reservation {self.reservation_id}"

