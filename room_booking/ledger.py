from __future__ import annotations

from datetime import date
from typing import Optional

from .intervals import overlapping
from .models import Reservation


class ReservationLedger:
    """Reservation records; the only authority on date conflicts."""

    def active(self, room_id):
        return Reservation.objects.filter(room_id=room_id, status=Reservation.Status.ACTIVE)

    def has_conflict(self, room_id, check_in: date, check_out: date) -> bool:
        return self.active(room_id).filter(overlapping(check_in, check_out)).exists()

    def has_active(self, room_id) -> bool:
        return self.active(room_id).exists()

    def insert(self, reservation: Reservation) -> int:
        """Persist ``reservation`` as active and return its id.

        The caller must hold the room lock and have checked ``has_conflict``
        for the same stay inside the same transaction.
        """
        reservation.pk = None
        reservation.status = Reservation.Status.ACTIVE
        reservation.save(force_insert=True)
        return reservation.pk

    def mark_cancelled(self, reservation_id) -> bool:
        """Cancel an active reservation. False when unknown or already cancelled."""
        updated = Reservation.objects.filter(
            pk=reservation_id, status=Reservation.Status.ACTIVE
        ).update(status=Reservation.Status.CANCELLED)
        return updated == 1

    def get(self, reservation_id) -> Optional[Reservation]:
        return Reservation.objects.select_related('room').filter(pk=reservation_id).first()
