from django.test import SimpleTestCase, TestCase, TransactionTestCase
from django.core.management import call_command
from django.db import DatabaseError, connection
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework import status
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO
from itertools import combinations
from unittest import mock
from concurrent.futures import ThreadPoolExecutor, as_completed

from .catalog import RoomCatalog
from .dates import as_date, parse_iso_date
from .engine import BookingEngine, RoomLocks
from .exceptions import Conflict, InvalidInterval, InvalidRequest, NotFound, StorageFailure
from .intervals import nights, overlaps
from .ledger import ReservationLedger
from .models import Room, Reservation, Payment
from .settlement import SettlementRecorder


def make_room(number="1", room_type="Standard", price="100.00", is_available=True):
    return Room.objects.create(
        number=number,
        room_type=room_type,
        price_per_night=Decimal(price),
        is_available=is_available,
    )


def make_reservation(room, check_in, check_out, status=Reservation.Status.ACTIVE, name="Guest"):
    return Reservation.objects.create(
        room=room,
        guest_name=name,
        guest_email=f"{name.lower()}@example.com",
        check_in=check_in,
        check_out=check_out,
        total_price=room.price_per_night * (check_out - check_in).days,
        status=status,
    )


def assert_no_active_overlaps(test, room):
    active = list(Reservation.objects.filter(room=room, status=Reservation.Status.ACTIVE))
    for first, second in combinations(active, 2):
        test.assertFalse(
            overlaps(first.check_in, first.check_out, second.check_in, second.check_out),
            f"Reservations {first.pk} and {second.pk} overlap",
        )


class IntervalTestCase(SimpleTestCase):
    """Half-open interval arithmetic"""

    def test_back_to_back_stays_do_not_overlap(self):
        self.assertFalse(overlaps(date(2024, 1, 1), date(2024, 1, 5),
                                  date(2024, 1, 5), date(2024, 1, 10)))

    def test_one_shared_night_overlaps(self):
        self.assertTrue(overlaps(date(2024, 1, 1), date(2024, 1, 5),
                                 date(2024, 1, 4), date(2024, 1, 10)))

    def test_overlaps_is_symmetric(self):
        d = lambda day: date(2024, 1, day)  # noqa: E731
        pairs = [
            ((d(1), d(5)), (d(5), d(10))),
            ((d(1), d(5)), (d(4), d(10))),
            ((d(2), d(4)), (d(1), d(10))),
            ((d(1), d(3)), (d(7), d(9))),
            ((d(3), d(6)), (d(3), d(6))),
        ]
        for (a_start, a_end), (b_start, b_end) in pairs:
            with self.subTest(a=(a_start, a_end), b=(b_start, b_end)):
                self.assertEqual(overlaps(a_start, a_end, b_start, b_end),
                                 overlaps(b_start, b_end, a_start, a_end))

    def test_nights_counts_whole_days(self):
        self.assertEqual(nights(date(2024, 6, 1), date(2024, 6, 3)), 2)
        self.assertEqual(nights(date(2024, 6, 1), date(2024, 6, 1)), 0)


class DateParsingTestCase(SimpleTestCase):
    """Date parsing returns a result instead of raising"""

    def test_valid_iso_date(self):
        result = parse_iso_date("2024-06-01")
        self.assertTrue(result.ok)
        self.assertEqual(result.value, date(2024, 6, 1))

    def test_invalid_dates_carry_a_reason(self):
        for raw in ["06/01/2024", "2024-13-01", "tomorrow", "", None]:
            with self.subTest(raw=raw):
                result = parse_iso_date(raw)
                self.assertFalse(result.ok)
                self.assertTrue(result.error)

    def test_as_date_falls_back_on_garbage(self):
        fallback = date(2025, 1, 1)
        self.assertEqual(as_date("not-a-date", fallback), fallback)
        self.assertEqual(as_date(None, fallback), fallback)
        self.assertEqual(as_date("2024-02-29", fallback), date(2024, 2, 29))
        self.assertEqual(as_date(date(2024, 3, 1), fallback), date(2024, 3, 1))


class RoomCatalogTestCase(TestCase):
    """Room lookups and searches"""

    def setUp(self):
        self.catalog = RoomCatalog()
        self.deluxe = make_room(number="201", room_type="Deluxe", price="150.00")
        self.deluxe_closed = make_room(number="202", room_type="Deluxe", price="150.00", is_available=False)
        self.standard = make_room(number="101", room_type="Standard")

    def test_list_available_only_returns_flagged_rooms(self):
        numbers = [room.number for room in self.catalog.list_available()]
        self.assertEqual(numbers, ["101", "201"])

    def test_search_matches_type_exactly(self):
        rooms = self.catalog.search("Deluxe", date(2024, 6, 1), date(2024, 6, 3))
        self.assertEqual(list(rooms), [self.deluxe])
        self.assertEqual(list(self.catalog.search("deluxe", date(2024, 6, 1), date(2024, 6, 3))), [])

    def test_search_consults_reservations_even_when_flag_is_true(self):
        """A stale flag must not hide a conflicting reservation"""
        make_reservation(self.deluxe, date(2024, 6, 2), date(2024, 6, 5))
        self.assertTrue(Room.objects.get(pk=self.deluxe.pk).is_available)

        self.assertEqual(list(self.catalog.search("Deluxe", date(2024, 6, 1), date(2024, 6, 3))), [])
        # Turnover day and later dates are still bookable.
        self.assertEqual(list(self.catalog.search("Deluxe", date(2024, 6, 5), date(2024, 6, 7))),
                         [self.deluxe])

    def test_search_ignores_cancelled_reservations(self):
        make_reservation(self.deluxe, date(2024, 6, 1), date(2024, 6, 5),
                         status=Reservation.Status.CANCELLED)
        self.assertEqual(list(self.catalog.search("Deluxe", date(2024, 6, 2), date(2024, 6, 3))),
                         [self.deluxe])

    def test_find_by_label(self):
        self.assertEqual(self.catalog.find_by_label("201"), self.deluxe)
        self.assertIsNone(self.catalog.find_by_label("202"))
        self.assertIsNone(self.catalog.find_by_label("999"))

    def test_set_availability_flag(self):
        self.assertTrue(self.catalog.set_availability_flag(self.deluxe.pk, False))
        self.deluxe.refresh_from_db()
        self.assertFalse(self.deluxe.is_available)
        self.assertFalse(self.catalog.set_availability_flag(999999, True))

    def test_get_unknown_room_raises_not_found(self):
        with self.assertRaises(NotFound):
            self.catalog.get(999999)


class ReservationLedgerTestCase(TestCase):
    """Conflict detection and status transitions"""

    def setUp(self):
        self.ledger = ReservationLedger()
        self.room = make_room()

    def test_only_active_reservations_conflict(self):
        make_reservation(self.room, date(2024, 6, 1), date(2024, 6, 5),
                         status=Reservation.Status.CANCELLED)
        self.assertFalse(self.ledger.has_conflict(self.room.pk, date(2024, 6, 2), date(2024, 6, 3)))

        make_reservation(self.room, date(2024, 6, 1), date(2024, 6, 5))
        self.assertTrue(self.ledger.has_conflict(self.room.pk, date(2024, 6, 2), date(2024, 6, 3)))
        self.assertFalse(self.ledger.has_conflict(self.room.pk, date(2024, 6, 5), date(2024, 6, 8)))

    def test_conflicts_are_per_room(self):
        other = make_room(number="2")
        make_reservation(other, date(2024, 6, 1), date(2024, 6, 5))
        self.assertFalse(self.ledger.has_conflict(self.room.pk, date(2024, 6, 1), date(2024, 6, 5)))

    def test_insert_assigns_increasing_ids(self):
        first = Reservation(room=self.room, guest_name="A", guest_email="a@x.com",
                            check_in=date(2024, 6, 1), check_out=date(2024, 6, 2),
                            total_price=Decimal("100.00"))
        second = Reservation(room=self.room, guest_name="B", guest_email="b@x.com",
                             check_in=date(2024, 6, 2), check_out=date(2024, 6, 3),
                             total_price=Decimal("100.00"))
        first_id = self.ledger.insert(first)
        second_id = self.ledger.insert(second)
        self.assertGreater(second_id, first_id)
        self.assertEqual(self.ledger.get(first_id).status, Reservation.Status.ACTIVE)

    def test_mark_cancelled_succeeds_once(self):
        reservation = make_reservation(self.room, date(2024, 6, 1), date(2024, 6, 5))
        self.assertTrue(self.ledger.mark_cancelled(reservation.pk))
        self.assertFalse(self.ledger.mark_cancelled(reservation.pk))
        self.assertFalse(self.ledger.mark_cancelled(999999))
        self.assertEqual(self.ledger.get(reservation.pk).status, Reservation.Status.CANCELLED)

    def test_get_unknown_returns_none(self):
        self.assertIsNone(self.ledger.get(999999))


class BookingEngineTestCase(TestCase):
    """Quoting, booking and cancellation"""

    def setUp(self):
        self.engine = BookingEngine()
        self.room = make_room(number="1", price="100.00")

    def test_quote_multiplies_nights_by_rate(self):
        self.assertEqual(self.engine.quote(self.room.pk, date(2024, 1, 1), date(2024, 1, 4)),
                         Decimal("300.00"))

    def test_quote_rejects_zero_nights(self):
        with self.assertRaises(InvalidInterval):
            self.engine.quote(self.room.pk, date(2024, 1, 1), date(2024, 1, 1))

    def test_quote_unknown_room(self):
        with self.assertRaises(NotFound):
            self.engine.quote(999999, date(2024, 1, 1), date(2024, 1, 2))

    def test_end_to_end_book_conflict_cancel_rebook(self):
        alice = self.engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.assertIsNotNone(alice.pk)
        self.assertEqual(alice.total_price, Decimal("200.00"))
        self.assertEqual(alice.status, Reservation.Status.ACTIVE)
        self.room.refresh_from_db()
        self.assertFalse(self.room.is_available)

        with self.assertRaises(Conflict):
            self.engine.book(self.room.pk, "Bob", "b@x.com", date(2024, 6, 2), date(2024, 6, 4))

        self.assertTrue(self.engine.cancel(alice.pk))
        self.room.refresh_from_db()
        self.assertTrue(self.room.is_available)

        bob = self.engine.book(self.room.pk, "Bob", "b@x.com", date(2024, 6, 2), date(2024, 6, 4))
        self.assertEqual(bob.total_price, Decimal("200.00"))
        assert_no_active_overlaps(self, self.room)

    def test_overlapping_bookings_are_rejected(self):
        """Every way of overlapping an existing stay is a conflict"""
        self.engine.book(self.room.pk, "First", "first@x.com", date(2024, 6, 10), date(2024, 6, 14))
        scenarios = {
            'starts before and overlaps': (date(2024, 6, 8), date(2024, 6, 11)),
            'starts during existing booking': (date(2024, 6, 12), date(2024, 6, 16)),
            'completely within existing booking': (date(2024, 6, 11), date(2024, 6, 13)),
            'completely encompasses existing booking': (date(2024, 6, 9), date(2024, 6, 15)),
        }
        for description, (check_in, check_out) in scenarios.items():
            with self.subTest(scenario=description):
                with self.assertRaises(Conflict):
                    self.engine.book(self.room.pk, "Other", "o@x.com", check_in, check_out)
        self.assertEqual(Reservation.objects.filter(room=self.room).count(), 1)

    def test_back_to_back_bookings_are_allowed(self):
        self.engine.book(self.room.pk, "Middle", "m@x.com", date(2024, 6, 5), date(2024, 6, 10))
        before = self.engine.book(self.room.pk, "Before", "b@x.com", date(2024, 6, 1), date(2024, 6, 5))
        after = self.engine.book(self.room.pk, "After", "a@x.com", date(2024, 6, 10), date(2024, 6, 15))
        self.assertNotEqual(before.pk, after.pk)
        self.assertEqual(Reservation.objects.filter(room=self.room, status=Reservation.Status.ACTIVE).count(), 3)
        assert_no_active_overlaps(self, self.room)

    def test_invalid_interval_is_rejected_before_any_change(self):
        for check_in, check_out in [(date(2024, 6, 3), date(2024, 6, 3)),
                                    (date(2024, 6, 5), date(2024, 6, 3))]:
            with self.subTest(check_in=check_in, check_out=check_out):
                with self.assertRaises(InvalidInterval):
                    self.engine.book(self.room.pk, "Alice", "a@x.com", check_in, check_out)
        self.assertFalse(Reservation.objects.exists())
        self.room.refresh_from_db()
        self.assertTrue(self.room.is_available)

    def test_blank_guest_details_are_rejected(self):
        with self.assertRaises(InvalidRequest):
            self.engine.book(self.room.pk, "  ", "a@x.com", date(2024, 6, 1), date(2024, 6, 2))
        with self.assertRaises(InvalidRequest):
            self.engine.book(self.room.pk, "Alice", "", date(2024, 6, 1), date(2024, 6, 2))

    def test_booking_unknown_room(self):
        with self.assertRaises(NotFound):
            self.engine.book(999999, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 2))

    def test_price_uses_current_rate(self):
        Room.objects.filter(pk=self.room.pk).update(price_per_night=Decimal("120.50"))
        reservation = self.engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.assertEqual(reservation.total_price, Decimal("241.00"))

    def test_cancel_twice_only_toggles_once(self):
        reservation = self.engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.assertTrue(self.engine.cancel(reservation.pk))
        self.room.refresh_from_db()
        self.assertTrue(self.room.is_available)

        with mock.patch.object(self.engine.catalog, 'set_availability_flag') as set_flag:
            self.assertFalse(self.engine.cancel(reservation.pk))
        set_flag.assert_not_called()
        self.room.refresh_from_db()
        self.assertTrue(self.room.is_available)

    def test_cancel_unknown_reservation(self):
        with self.assertRaises(NotFound):
            self.engine.cancel(999999)

    def test_cancel_keeps_room_closed_while_other_stays_remain(self):
        first = self.engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.engine.book(self.room.pk, "Bob", "b@x.com", date(2024, 7, 1), date(2024, 7, 3))
        self.assertTrue(self.engine.cancel(first.pk))
        self.room.refresh_from_db()
        self.assertFalse(self.room.is_available)

    def test_is_available_follows_the_ledger(self):
        self.engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.assertFalse(self.engine.is_available(self.room.pk, date(2024, 6, 2), date(2024, 6, 4)))
        self.assertTrue(self.engine.is_available(self.room.pk, date(2024, 6, 3), date(2024, 6, 4)))

    def test_engine_accepts_injected_collaborators(self):
        ledger = mock.Mock(spec=ReservationLedger)
        ledger.has_conflict.return_value = True
        engine = BookingEngine(ledger=ledger)
        self.assertFalse(engine.is_available(self.room.pk, date(2024, 6, 1), date(2024, 6, 2)))
        ledger.has_conflict.assert_called_once_with(self.room.pk, date(2024, 6, 1), date(2024, 6, 2))


class BookingStorageFailureTestCase(TestCase):
    """Storage errors during booking leave consistent state"""

    def setUp(self):
        self.engine = BookingEngine()
        self.room = make_room()

    def test_failed_insert_leaves_flag_untouched(self):
        with mock.patch.object(self.engine.ledger, 'insert', side_effect=DatabaseError("disk full")):
            with self.assertRaises(StorageFailure):
                self.engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.room.refresh_from_db()
        self.assertTrue(self.room.is_available)
        self.assertFalse(Reservation.objects.exists())

    def test_failed_flag_update_keeps_reservation(self):
        with mock.patch.object(self.engine.catalog, 'set_availability_flag',
                               side_effect=DatabaseError("locked")):
            with self.assertLogs('room_booking.engine', level='WARNING') as logs:
                reservation = self.engine.book(self.room.pk, "Alice", "a@x.com",
                                               date(2024, 6, 1), date(2024, 6, 3))
        self.assertTrue(any("availability flag" in line for line in logs.output))
        self.assertFalse(reservation.flag_synced)
        self.assertTrue(Reservation.objects.filter(pk=reservation.pk,
                                                   status=Reservation.Status.ACTIVE).exists())
        self.room.refresh_from_db()
        self.assertTrue(self.room.is_available)

    def test_failed_flag_update_during_cancel_keeps_cancellation(self):
        reservation = self.engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        with mock.patch.object(self.engine.catalog, 'set_availability_flag',
                               side_effect=DatabaseError("locked")):
            with self.assertLogs('room_booking.engine', level='WARNING') as logs:
                self.assertTrue(self.engine.cancel(reservation.pk))
        self.assertTrue(any("availability flag" in line for line in logs.output))
        self.assertFalse(self.engine.room_flag_synced)
        reservation.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.Status.CANCELLED)
        self.room.refresh_from_db()
        self.assertFalse(self.room.is_available)

    def test_engine_stays_usable_after_failure(self):
        with mock.patch.object(self.engine.ledger, 'insert', side_effect=DatabaseError("gone")):
            with self.assertRaises(StorageFailure):
                self.engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        reservation = self.engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.assertEqual(reservation.status, Reservation.Status.ACTIVE)

    def test_busy_room_times_out_instead_of_blocking(self):
        locks = RoomLocks()
        engine = BookingEngine(locks=locks, lock_timeout=0.01)
        with locks.hold(self.room.pk, timeout=1):
            with self.assertRaises(StorageFailure):
                engine.book(self.room.pk, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.assertFalse(Reservation.objects.exists())

    def test_room_id_aliases_share_one_lock(self):
        """A room reached through a differently spelled id still waits for its lock"""
        locks = RoomLocks()
        engine = BookingEngine(locks=locks, lock_timeout=0.01)
        alias = f"0{self.room.pk}"
        with locks.hold(self.room.pk, timeout=1):
            with self.assertRaises(StorageFailure):
                engine.book(alias, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.assertFalse(Reservation.objects.exists())
        self.assertEqual(len(locks), 1)

    def test_unknown_rooms_do_not_create_locks(self):
        locks = RoomLocks()
        engine = BookingEngine(locks=locks)
        for room_id in (999999, 1000000, "not-a-room"):
            with self.subTest(room_id=room_id):
                with self.assertRaises(NotFound):
                    engine.book(room_id, "Alice", "a@x.com", date(2024, 6, 1), date(2024, 6, 3))
        self.assertEqual(len(locks), 0)


class SettlementRecorderTestCase(TestCase):
    """Payment facts"""

    def setUp(self):
        self.recorder = SettlementRecorder()
        self.room = make_room()
        self.reservation = make_reservation(self.room, date(2024, 6, 1), date(2024, 6, 3))

    def test_record_and_lookup(self):
        payment = self.recorder.record(self.reservation.pk, Decimal("200.00"), Payment.Method.CASH)
        found = self.recorder.lookup(self.reservation.pk)
        self.assertEqual(found.pk, payment.pk)
        self.assertEqual(found.method, Payment.Method.CASH)
        self.assertEqual(found.payment_date, timezone.localdate())

    def test_amount_is_not_reconciled(self):
        payment = self.recorder.record(self.reservation.pk, Decimal("50.00"), Payment.Method.DEBIT_CARD)
        self.assertEqual(payment.amount, Decimal("50.00"))

    def test_lookup_returns_latest_payment(self):
        self.recorder.record(self.reservation.pk, Decimal("100.00"), Payment.Method.CASH)
        latest = self.recorder.record(self.reservation.pk, Decimal("100.00"), Payment.Method.CREDIT_CARD)
        self.assertEqual(self.recorder.lookup(self.reservation.pk).pk, latest.pk)

    def test_negative_amount_is_rejected(self):
        with self.assertRaises(InvalidRequest):
            self.recorder.record(self.reservation.pk, Decimal("-0.01"), Payment.Method.CASH)
        self.assertFalse(Payment.objects.exists())

    def test_record_for_unknown_reservation(self):
        with self.assertRaises(NotFound):
            self.recorder.record(999999, Decimal("10.00"), Payment.Method.CASH)
        self.assertFalse(Payment.objects.exists())

    def test_missing_date_falls_back_to_today(self):
        Payment.objects.create(reservation=self.reservation, amount=Decimal("200.00"),
                               method=Payment.Method.CASH, payment_date=None)
        with self.assertLogs('room_booking.settlement', level='WARNING'):
            payment = self.recorder.lookup(self.reservation.pk)
        self.assertEqual(payment.payment_date, timezone.localdate())

    def test_lookup_without_payment(self):
        self.assertIsNone(self.recorder.lookup(self.reservation.pk))


class RaceConditionTestCase(TransactionTestCase):
    """Test race conditions in booking creation"""

    def setUp(self):
        self.room = make_room(number="101")
        self.check_in = timezone.localdate() + timedelta(days=1)
        self.check_out = timezone.localdate() + timedelta(days=3)

    def test_concurrent_booking_attempts_race_condition(self):
        """Concurrent attempts on the same room and dates produce one reservation"""

        def create_booking(guest_email):
            try:
                reservation = BookingEngine().book(
                    self.room.pk, f'Test Guest {guest_email}', guest_email,
                    self.check_in, self.check_out,
                )
                return {'success': True, 'reservation_id': reservation.pk}
            except Exception as e:
                return {'success': False, 'error': repr(e)}
            finally:
                connection.close()

        num_attempts = 5
        results = []

        with ThreadPoolExecutor(max_workers=num_attempts) as executor:
            futures = [executor.submit(create_booking, f'test{i}@example.com')
                       for i in range(num_attempts)]
            for future in as_completed(futures):
                results.append(future.result())

        successful_bookings = [r for r in results if r['success']]
        self.assertEqual(len(successful_bookings), 1,
                         f"Expected exactly 1 successful booking, got {results}")

        booking_count = Reservation.objects.filter(
            room=self.room,
            check_in=self.check_in,
            check_out=self.check_out,
        ).count()
        self.assertEqual(booking_count, 1, "Expected exactly 1 reservation in database")

    def test_concurrent_room_availability_check(self):
        """Searching then booking under load never double-books a room"""
        rooms = [self.room] + [make_room(number=f"10{i + 2}") for i in range(3)]

        def book_any_available_room(guest_num):
            try:
                available = RoomCatalog().search("Standard", self.check_in, self.check_out)
                room = available.first()
                if room is None:
                    return {'success': False, 'error': 'No rooms available'}
                BookingEngine().book(room.pk, f'Guest {guest_num}', f'guest{guest_num}@example.com',
                                     self.check_in, self.check_out)
                return {'success': True, 'room_id': room.pk}
            except Exception as e:
                return {'success': False, 'error': repr(e)}
            finally:
                connection.close()

        num_guests = 10
        with ThreadPoolExecutor(max_workers=num_guests) as executor:
            futures = [executor.submit(book_any_available_room, i) for i in range(num_guests)]
            results = [future.result() for future in as_completed(futures)]

        successful_bookings = [r for r in results if r['success']]
        self.assertLessEqual(len(successful_bookings), len(rooms),
                             "More bookings succeeded than rooms available")
        for room in rooms:
            assert_no_active_overlaps(self, room)


class RoomApiTestCase(APITestCase):
    """Room endpoints"""

    def setUp(self):
        self.check_in = timezone.localdate() + timedelta(days=1)
        self.check_out = timezone.localdate() + timedelta(days=3)
        self.deluxe = make_room(number="201", room_type="Deluxe", price="150.00")
        self.booked = make_room(number="202", room_type="Deluxe", price="150.00")
        make_reservation(self.booked, self.check_in, self.check_out)
        make_room(number="301", room_type="Suite", price="250.00", is_available=False)

    def test_list_returns_flag_available_rooms(self):
        response = self.client.get('/api/rooms/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([room['number'] for room in response.data], ["201", "202"])

    def test_search_excludes_conflicting_rooms(self):
        response = self.client.get('/api/rooms/', {
            'room_type': 'Deluxe',
            'check_in': self.check_in.isoformat(),
            'check_out': self.check_out.isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([room['number'] for room in response.data], ["201"])

    def test_search_with_invalid_date(self):
        response = self.client.get('/api/rooms/', {
            'room_type': 'Deluxe', 'check_in': '2024/06/01', 'check_out': '2024-06-03',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('YYYY-MM-DD', response.data['error'])

    def test_search_requires_room_type(self):
        response = self.client.get('/api/rooms/', {
            'check_in': self.check_in.isoformat(), 'check_out': self.check_out.isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_by_number(self):
        response = self.client.get('/api/rooms/by_number/', {'number': '201'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.deluxe.pk)

        response = self.client.get('/api/rooms/by_number/', {'number': '301'})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_quote(self):
        response = self.client.get(f'/api/rooms/{self.deluxe.pk}/quote/', {
            'check_in': self.check_in.isoformat(), 'check_out': self.check_out.isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_price'], "300.00")
        self.assertEqual(response.data['nights'], 2)

    def test_quote_unknown_room(self):
        response = self.client.get('/api/rooms/999999/quote/', {
            'check_in': self.check_in.isoformat(), 'check_out': self.check_out.isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_availability(self):
        params = {'check_in': self.check_in.isoformat(), 'check_out': self.check_out.isoformat()}
        response = self.client.get(f'/api/rooms/{self.booked.pk}/availability/', params)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['available'])
        response = self.client.get(f'/api/rooms/{self.deluxe.pk}/availability/', params)
        self.assertTrue(response.data['available'])


class ReservationApiTestCase(APITestCase):
    """Reservation, cancellation and payment endpoints"""

    def setUp(self):
        self.room = make_room(number="1", price="100.00")
        self.booking_data = {
            'room_id': self.room.pk,
            'guest_name': 'Alice',
            'guest_email': 'a@x.com',
            'check_in': (timezone.localdate() + timedelta(days=1)).isoformat(),
            'check_out': (timezone.localdate() + timedelta(days=3)).isoformat(),
        }

    def book(self, **overrides):
        return self.client.post('/api/reservations/', {**self.booking_data, **overrides}, format='json')

    def test_create_reservation(self):
        response = self.book()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_price'], "200.00")
        self.assertEqual(response.data['status'], Reservation.Status.ACTIVE)
        self.assertEqual(response.data['nights'], 2)
        self.room.refresh_from_db()
        self.assertFalse(self.room.is_available)

    def test_conflicting_reservation(self):
        self.book()
        response = self.book(guest_name='Bob', guest_email='b@x.com')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('not available', response.data['error'])

    def test_past_check_in_is_rejected(self):
        response = self.book(check_in=(timezone.localdate() - timedelta(days=1)).isoformat())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Reservation.objects.exists())

    def test_check_out_must_follow_check_in(self):
        response = self.book(check_out=self.booking_data['check_in'])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_room(self):
        response = self.book(room_id=999999)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cancel_then_cancel_again(self):
        reservation_id = self.book().data['id']
        response = self.client.post(f'/api/reservations/{reservation_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Reservation.Status.CANCELLED)

        response = self.client.post(f'/api/reservations/{reservation_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.room.refresh_from_db()
        self.assertTrue(self.room.is_available)

    def test_cancel_unknown_reservation(self):
        response = self.client.post('/api/reservations/999999/cancel/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_flag_failure_is_reported_as_warning(self):
        response = self.book()
        self.assertNotIn('warning', response.data)
        reservation_id = response.data['id']

        with mock.patch.object(RoomCatalog, 'set_availability_flag', side_effect=DatabaseError("locked")):
            response = self.client.post(f'/api/reservations/{reservation_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Reservation.Status.CANCELLED)
        self.assertIn('availability flag', response.data['warning'])

        with mock.patch.object(RoomCatalog, 'set_availability_flag', side_effect=DatabaseError("locked")):
            response = self.book()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('warning', response.data)

    def test_payment_flow(self):
        reservation_id = self.book().data['id']
        response = self.client.get(f'/api/reservations/{reservation_id}/payment/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post(f'/api/reservations/{reservation_id}/payment/', {
            'amount': '200.00', 'method': 'Debit Card',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['method'], 'Debit Card')

        response = self.client.get(f'/api/reservations/{reservation_id}/payment/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['amount'], '200.00')

        response = self.client.get(f'/api/reservations/{reservation_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payment']['method'], 'Debit Card')
        self.assertEqual(response.data['guest_name'], 'Alice')

    def test_payment_validation(self):
        reservation_id = self.book().data['id']
        response = self.client.post(f'/api/reservations/{reservation_id}/payment/', {
            'amount': '-5.00', 'method': 'Cash',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/reservations/{reservation_id}/payment/', {
            'amount': '5.00', 'method': 'Cheque',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_payment_for_unknown_reservation(self):
        response = self.client.post('/api/reservations/999999/payment/', {
            'amount': '5.00', 'method': 'Cash',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_retrieve_unknown_reservation(self):
        response = self.client.get('/api/reservations/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_health_check(self):
        response = self.client.get('/health')
        self.assertEqual(response.json(), {"status": "ok"})


class PopulateDbCommandTestCase(TestCase):

    def test_seeds_rooms_once(self):
        call_command('populate_db', stdout=StringIO())
        call_command('populate_db', stdout=StringIO())
        self.assertEqual(Room.objects.count(), 10)
        room = Room.objects.get(number="3")
        self.assertEqual(room.room_type, "Standard")
        self.assertEqual(room.price_per_night, Decimal("100.00"))
        self.assertEqual(Room.objects.get(number="1").room_type, "Deluxe")
        self.assertEqual(Room.objects.get(number="2").price_per_night, Decimal("250.00"))
