from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from .dates import as_date
from .exceptions import InvalidRequest, NotFound, StorageFailure
from .ledger import ReservationLedger
from .models import Payment

logger = logging.getLogger(__name__)


class SettlementRecorder:
    """Records payment facts. Amounts are not reconciled with the stay price."""

    def __init__(self, ledger: ReservationLedger | None = None):
        self.ledger = ledger or ReservationLedger()

    def record(self, reservation_id, amount: Decimal, method: str) -> Payment:
        if amount is None or amount < 0:
            raise InvalidRequest("Payment amount must be non-negative")
        reservation = self.ledger.get(reservation_id)
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        try:
            payment = Payment.objects.create(
                reservation=reservation,
                amount=amount,
                method=method,
                payment_date=timezone.localdate(),
            )
        except DatabaseError as exc:
            logger.exception("Failed to record payment for reservation %s", reservation_id)
            raise StorageFailure("Could not record the payment") from exc
        logger.info("Payment %s of %s recorded for reservation %s", payment.pk, amount, reservation_id)
        return payment

    def lookup(self, reservation_id) -> Optional[Payment]:
        payment = Payment.objects.filter(reservation_id=reservation_id).order_by('-id').first()
        if payment is None:
            return None
        recorded = as_date(payment.payment_date, fallback=None)
        if recorded is None:
            logger.warning("Payment %s has no valid date, using current date", payment.pk)
            payment.payment_date = timezone.localdate()
        return payment
