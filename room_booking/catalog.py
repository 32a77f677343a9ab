from __future__ import annotations

from datetime import date
from typing import Optional

from django.db.models import Exists, OuterRef, QuerySet

from .exceptions import NotFound
from .intervals import overlapping
from .models import Room, Reservation


class RoomCatalog:
    """Room lookups and the soft availability flag."""

    def list_available(self) -> QuerySet:
        return Room.objects.filter(is_available=True).order_by('number', 'id')

    def search(self, room_type: str, check_in: date, check_out: date) -> QuerySet:
        """Flag-available rooms of ``room_type`` with no active overlapping stay."""
        overlap = Exists(
            Reservation.objects.filter(
                overlapping(check_in, check_out),
                room=OuterRef('pk'),
                status=Reservation.Status.ACTIVE,
            )
        )
        return (
            self.list_available()
            .filter(room_type=room_type)
            .annotate(has_overlap=overlap)
            .filter(has_overlap=False)
        )

    def find_by_label(self, number: str) -> Optional[Room]:
        return self.list_available().filter(number=number).first()

    def get(self, room_id) -> Room:
        try:
            return Room.objects.get(pk=room_id)
        except (Room.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Room {room_id} not found")

    def lock(self, room_id) -> Room:
        """Fetch the room row locked for update; call inside a transaction."""
        try:
            return Room.objects.select_for_update().get(pk=room_id)
        except Room.DoesNotExist:
            raise NotFound(f"Room {room_id} not found")

    def set_availability_flag(self, room_id, value: bool) -> bool:
        return Room.objects.filter(pk=room_id).update(is_available=value) == 1
