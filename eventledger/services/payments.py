"""Payment status state machine.

Legal moves are ``pending -> paid``, ``pending -> failed`` and
``paid -> refunded``. Each move is a conditional UPDATE on the current
status, so of two racing transitions at most one takes effect. Moves that
leave the holding set (``pending``/``paid``) hand the tickets back to the
event counter in the same transaction.
"""

import enum
import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from eventledger.database.db import atomic
from eventledger.database.retry import run_with_retry
from eventledger.helpers import utcnow
from eventledger.models.bookings import Booking, FailureReason, PaymentStatus
from eventledger.models.events import Event
from eventledger.services import tickets
from eventledger.services.errors import BookingNotFound, InconsistentTransition, StaleCallback

logger = logging.getLogger(__name__)


class PaymentOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _load(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


def _transition(db: Session, booking: Booking, source: PaymentStatus, target: PaymentStatus, **values) -> bool:
    stmt = (
        update(Booking)
        .where(Booking.id == booking.id)
        .where(Booking.payment_status == source.value)
        .values(payment_status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    moved = db.execute(stmt).rowcount == 1  # type: ignore
    db.refresh(booking)
    return moved


def _release(db: Session, booking: Booking) -> None:
    stmt = (
        update(Event)
        .where(Event.id == booking.event_id)
        .values(reserved_count=Event.reserved_count - booking.ticket_count)
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)


def confirm_free(db: Session, booking_id: int) -> Booking:
    """Mark a free booking paid and issue its ticket code."""
    return run_with_retry(_confirm_free, db, booking_id)


def _confirm_free(db: Session, booking_id: int) -> Booking:
    with atomic(db):
        booking = _load(db, booking_id)
        if booking.total_price != 0:
            raise InconsistentTransition(booking.id, booking.payment_status, PaymentStatus.PAID.value)
        # Free bookings are normally created already paid.
        if booking.payment_status == PaymentStatus.PAID.value:
            return booking
        if not _transition(db, booking, PaymentStatus.PENDING, PaymentStatus.PAID):
            raise InconsistentTransition(booking.id, booking.payment_status, PaymentStatus.PAID.value)
        tickets.issue(db, booking)
    return booking


def apply_payment_result(
    db: Session,
    booking_id: int,
    outcome: PaymentOutcome | str,
    external_reference: str,
) -> Booking:
    """
    Settle a pending booking from a payment-provider callback.

    Safe to call repeatedly for the same provider event: once a booking has
    left ``pending``, a callback carrying the reference that settled it is a
    no-op, and any other reference raises StaleCallback.
    """
    outcome = PaymentOutcome(outcome)
    return run_with_retry(_apply_payment_result, db, booking_id, outcome, external_reference)


def _apply_payment_result(
    db: Session, booking_id: int, outcome: PaymentOutcome, external_reference: str
) -> Booking:
    with atomic(db):
        booking = _load(db, booking_id)
        if outcome is PaymentOutcome.SUCCEEDED:
            moved = _transition(
                db, booking, PaymentStatus.PENDING, PaymentStatus.PAID,
                external_reference=external_reference,
            )
            if moved:
                tickets.issue(db, booking)
        else:
            moved = _transition(
                db, booking, PaymentStatus.PENDING, PaymentStatus.FAILED,
                external_reference=external_reference,
                failure_reason=FailureReason.PAYMENT_FAILED.value,
            )
            if moved:
                _release(db, booking)

    if moved:
        logger.info(
            "Booking %s %s via payment %s",
            booking.id, booking.payment_status, external_reference,
        )
        return booking

    if booking.external_reference == external_reference:
        logger.info("Ignoring replayed payment %s for booking %s", external_reference, booking.id)
        return booking

    logger.warning(
        "Stale payment callback %s for booking %s (status %s, settled by %s)",
        external_reference, booking.id, booking.payment_status, booking.external_reference,
    )
    raise StaleCallback(booking.id, external_reference)


def refund(db: Session, booking_id: int) -> Booking:
    """Move a paid booking to refunded, voiding its ticket and freeing its tickets."""
    return run_with_retry(_refund, db, booking_id)


def _refund(db: Session, booking_id: int) -> Booking:
    with atomic(db):
        booking = _load(db, booking_id)
        voided_code = booking.ticket_code
        if not _transition(db, booking, PaymentStatus.PAID, PaymentStatus.REFUNDED, ticket_code=None):
            raise InconsistentTransition(booking.id, booking.payment_status, PaymentStatus.REFUNDED.value)
        _release(db, booking)
    logger.info("Refunded booking %s, voided ticket %s", booking.id, voided_code)
    return booking


def expire_pending_bookings(db: Session, *, now: datetime | None = None, limit: int = 500) -> int:
    """
    Fail pending bookings whose checkout window has passed.

    Each booking is expired in its own transaction, so a callback racing the
    sweep either settles the booking first or finds it already failed.
    Returns the number of bookings expired.
    """
    now = now or utcnow()
    stmt = (
        select(Booking.id)
        .where(Booking.payment_status == PaymentStatus.PENDING.value)
        .where(Booking.expires_at <= now)
        .order_by(Booking.expires_at)
        .limit(limit)
    )
    booking_ids = list(db.scalars(stmt))

    expired = 0
    for booking_id in booking_ids:
        if run_with_retry(_expire_one, db, booking_id):
            expired += 1

    if expired:
        logger.info("Expired %s abandoned pending booking(s)", expired)
    return expired


def _expire_one(db: Session, booking_id: int) -> bool:
    with atomic(db):
        booking = _load(db, booking_id)
        moved = _transition(
            db, booking, PaymentStatus.PENDING, PaymentStatus.FAILED,
            failure_reason=FailureReason.EXPIRED.value,
        )
        if moved:
            _release(db, booking)
    return moved
