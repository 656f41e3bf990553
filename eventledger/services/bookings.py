import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta

import redis
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from eventledger.core import redis_config
from eventledger.core.config import settings
from eventledger.database.db import atomic
from eventledger.database.retry import EventBusy, run_with_retry
from eventledger.helpers import as_utc, utcnow
from eventledger.models.bookings import Booking, PaymentStatus
from eventledger.models.events import Event
from eventledger.services import tickets
from eventledger.services.errors import (
    BookingNotFound,
    CapacityExceeded,
    EventNotBookable,
    EventNotFound,
    InvalidQuantity,
)

logger = logging.getLogger(__name__)


@contextmanager
def event_lock(event_id: int) -> Iterator[None]:
    """
    Serialize admission attempts for a single event.

    Each event has its own lock key, so bookings for different events never
    wait on each other. The conditional counter update below is what keeps
    the capacity invariant; the lock keeps contending requests from piling up
    on the same database row.
    """
    redis_client = redis_config.get_redis_client()
    lock = redis_client.lock(
        f"event_lock:{event_id}",
        timeout=settings.EVENT_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=settings.EVENT_LOCK_BLOCKING_TIMEOUT_SECONDS,
    )
    if not lock.acquire(blocking=True):
        raise EventBusy(f"Could not acquire admission lock for event {event_id}")
    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            # Lock expired while we held it; the transaction has already finished.
            logger.warning("Admission lock for event %s expired before release", event_id)


def reserve(db: Session, *, event_id: int, attendee_id: str, ticket_count: int) -> Booking:
    """
    Reserve ``ticket_count`` tickets for an attendee.

    Free events produce a paid booking with a ticket code; priced events
    produce a pending booking holding its tickets until the payment callback
    or the reclaimer settles it.

    Raises:
        InvalidQuantity: ticket_count is below 1.
        EventNotFound: the event does not exist.
        EventNotBookable: the event has started and future-only booking is on.
        CapacityExceeded: not enough tickets left. Nothing is written.
        Unavailable: the store kept failing transiently.
    """
    if ticket_count < 1:
        raise InvalidQuantity(ticket_count)
    return run_with_retry(_reserve_once, db, event_id, attendee_id, ticket_count)


def _reserve_once(db: Session, event_id: int, attendee_id: str, ticket_count: int) -> Booking:
    now = utcnow()
    with event_lock(event_id), atomic(db):
        event = db.get(Event, event_id)
        if event is None:
            raise EventNotFound(event_id)
        if settings.REQUIRE_FUTURE_EVENTS and event.starts_at is not None and as_utc(event.starts_at) <= now:
            raise EventNotBookable(event_id)

        # Check capacity and hold the tickets in one statement
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.reserved_count + ticket_count <= Event.capacity)
            .values(reserved_count=Event.reserved_count + ticket_count)
            .execution_options(synchronize_session=False)
        )
        res = db.execute(stmt)
        if res.rowcount != 1:  # type: ignore
            db.refresh(event)
            logger.info(
                "Rejected %s ticket(s) for event %s: %s left",
                ticket_count, event_id, event.spots_left,
            )
            raise CapacityExceeded(event_id, ticket_count, event.spots_left)

        booking = Booking(
            event_id=event_id,
            attendee_id=attendee_id,
            ticket_count=ticket_count,
            total_price=event.price * ticket_count,
        )
        if event.is_free:
            booking.payment_status = PaymentStatus.PAID.value
        else:
            booking.payment_status = PaymentStatus.PENDING.value
            booking.expires_at = _pending_deadline(now)
        db.add(booking)
        db.flush()  # gets booking.id

        if event.is_free:
            tickets.issue(db, booking, issued_at=now)

    logger.info(
        "Booking %s reserved %s ticket(s) for event %s as %s",
        booking.id, ticket_count, event_id, booking.payment_status,
    )
    db.refresh(booking)
    return booking


def _pending_deadline(now: datetime) -> datetime:
    return now + timedelta(minutes=settings.PENDING_BOOKING_TTL_MINUTES)


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


def get_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise EventNotFound(event_id)
    return event


def list_bookings(db: Session, event_id: int) -> list[Booking]:
    """Every booking of an event, whatever its status, newest first."""
    get_event(db, event_id)
    stmt = (
        select(Booking)
        .where(Booking.event_id == event_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(db.scalars(stmt))
