"""Availability checks, pricing, booking and cancellation.

Booking is check-then-act: the conflict check and the insert for one room
run while holding that room's lock and inside one transaction that also
locks the room row (``select_for_update``), so two callers can never both
see a free interval and both insert.
"""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.db import DatabaseError, transaction

from .catalog import RoomCatalog
from .exceptions import Conflict, InvalidInterval, InvalidRequest, NotFound, StorageFailure
from .intervals import nights
from .ledger import ReservationLedger
from .models import Reservation

logger = logging.getLogger(__name__)


class RoomLocks:
    """Per-room mutexes. Different rooms never share a lock."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = defaultdict(threading.Lock)

    def __len__(self):
        return len(self._locks)

    @contextmanager
    def hold(self, room_pk: int, timeout: float):
        """Hold the lock of an existing room, keyed by its primary key."""
        with self._guard:
            lock = self._locks[room_pk]
        if not lock.acquire(timeout=timeout):
            raise StorageFailure(f"Room {room_pk} is busy, retry the request")
        try:
            yield
        finally:
            lock.release()


_room_locks = RoomLocks()


class BookingEngine:
    def __init__(self, catalog: RoomCatalog | None = None,
                 ledger: ReservationLedger | None = None,
                 locks: RoomLocks | None = None,
                 lock_timeout: float | None = None):
        self.catalog = catalog or RoomCatalog()
        self.ledger = ledger or ReservationLedger()
        self.locks = locks or _room_locks
        if lock_timeout is None:
            lock_timeout = getattr(settings, 'BOOKING_LOCK_TIMEOUT', 5.0)
        self.lock_timeout = lock_timeout
        self.room_flag_synced = True

    def is_available(self, room_id, check_in: date, check_out: date) -> bool:
        return not self.ledger.has_conflict(room_id, check_in, check_out)

    def quote(self, room_id, check_in: date, check_out: date) -> Decimal:
        _validate_interval(check_in, check_out)
        room = self.catalog.get(room_id)
        return room.price_per_night * nights(check_in, check_out)

    def book(self, room_id, guest_name: str, guest_email: str,
             check_in: date, check_out: date) -> Reservation:
        """Reserve a room for [check_in, check_out).

        The returned reservation carries ``flag_synced``; it is False when the
        room's availability flag could not be updated. The reservation still
        stands in that case.
        """
        _validate_interval(check_in, check_out)
        guest_name = (guest_name or '').strip()
        guest_email = (guest_email or '').strip()
        if not guest_name or not guest_email:
            raise InvalidRequest("Guest name and contact are required")

        # Resolve the id first so aliases of one room share a lock and unknown
        # ids never create one.
        room_pk = self.catalog.get(room_id).pk

        with self.locks.hold(room_pk, self.lock_timeout):
            try:
                with transaction.atomic():
                    room = self.catalog.lock(room_pk)
                    if not self.is_available(room.pk, check_in, check_out):
                        logger.info("Room %s unavailable for %s..%s", room.pk, check_in, check_out)
                        raise Conflict("Room is not available for the selected dates")

                    total_price = room.price_per_night * nights(check_in, check_out)
                    reservation = Reservation(
                        room=room,
                        guest_name=guest_name,
                        guest_email=guest_email,
                        check_in=check_in,
                        check_out=check_out,
                        total_price=total_price,
                    )
                    self.ledger.insert(reservation)
                    reservation.flag_synced = self._set_flag(room.pk, False)
            except DatabaseError as exc:
                logger.exception("Failed to store reservation for room %s", room_id)
                raise StorageFailure("Could not store the reservation") from exc

        logger.info("Reservation %s created for room %s", reservation.pk, room_id)
        return reservation

    def cancel(self, reservation_id) -> bool:
        """Cancel a reservation. Returns False when it was already cancelled.

        A failed availability flag update is logged as a warning and does not
        undo the cancellation; ``room_flag_synced`` records the outcome.
        """
        reservation = self.get_reservation(reservation_id)
        room_id = reservation.room_id
        self.room_flag_synced = True

        with self.locks.hold(room_id, self.lock_timeout):
            try:
                with transaction.atomic():
                    self.catalog.lock(room_id)
                    if not self.ledger.mark_cancelled(reservation.pk):
                        logger.info("Reservation %s already cancelled", reservation.pk)
                        return False
                    # Other future stays may still hold the room.
                    self.room_flag_synced = self._set_flag(
                        room_id, not self.ledger.has_active(room_id))
            except DatabaseError as exc:
                logger.exception("Failed to cancel reservation %s", reservation_id)
                raise StorageFailure("Could not cancel the reservation") from exc

        logger.info("Reservation %s cancelled", reservation.pk)
        return True

    def get_reservation(self, reservation_id) -> Reservation:
        reservation = self.ledger.get(reservation_id)
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        return reservation

    def _set_flag(self, room_id, value: bool) -> bool:
        # The flag is a hint: a failed update must not undo the ledger change.
        try:
            with transaction.atomic():
                updated = self.catalog.set_availability_flag(room_id, value)
        except DatabaseError:
            logger.warning("Could not set availability flag of room %s to %s", room_id, value,
                           exc_info=True)
            return False
        if not updated:
            logger.warning("Availability flag not updated: room %s not found", room_id)
        return updated


def _validate_interval(check_in: date, check_out: date) -> None:
    if check_in is None or check_out is None:
        raise InvalidInterval("Check-in and check-out dates are required")
    if nights(check_in, check_out) < 1:
        raise InvalidInterval("check_out must be at least one night after check_in")
