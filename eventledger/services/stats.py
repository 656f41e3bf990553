"""Attendance and revenue reporting.

Only paid bookings count. Pending, failed and refunded bookings never show up
in attendee or revenue figures. Results are read-only and may be served from
a short-lived Redis cache since they never gate admission.
"""

import json
import logging
from collections.abc import Callable
from decimal import Decimal

import redis
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from eventledger.core import redis_config
from eventledger.core.config import settings
from eventledger.models.bookings import Booking, PaymentStatus
from eventledger.models.events import Event
from eventledger.services.errors import EventNotFound

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
MONEY_FIELDS = ("revenue", "total_revenue")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


def _revive(data):
    if isinstance(data, list):
        return [_revive(item) for item in data]
    for field in MONEY_FIELDS:
        if field in data:
            data[field] = _money(data[field])
    return data


def _cached(key: str, compute: Callable[[], dict | list]):
    ttl = settings.STATS_CACHE_TTL_SECONDS
    if ttl <= 0:
        return compute()

    try:
        client = redis_config.get_redis_client()
        raw = client.get(key)
        if raw is not None:
            return _revive(json.loads(raw))
    except redis.exceptions.RedisError as exc:
        logger.warning("Stats cache unavailable, computing %s from the ledger: %s", key, exc)
        return compute()

    data = compute()
    try:
        client.setex(key, ttl, json.dumps(data, default=str))
    except redis.exceptions.RedisError as exc:
        logger.warning("Could not cache %s: %s", key, exc)
    return data


def _paid_totals(db: Session, *conditions):
    stmt = (
        select(
            func.coalesce(func.sum(Booking.ticket_count), 0),
            func.coalesce(func.sum(Booking.total_price), 0),
        )
        .select_from(Booking)
        .join(Event, Event.id == Booking.event_id)
        .where(Booking.payment_status == PaymentStatus.PAID.value, *conditions)
    )
    tickets, revenue = db.execute(stmt).one()
    return int(tickets), _money(revenue)


def event_stats(db: Session, event_id: int) -> dict:
    def compute() -> dict:
        event = db.get(Event, event_id, populate_existing=True)
        if event is None:
            raise EventNotFound(event_id)
        attendees, revenue = _paid_totals(db, Booking.event_id == event_id)
        return {
            "event_id": event.id,
            "capacity": event.capacity,
            "reserved_count": event.reserved_count,
            "spots_left": event.spots_left,
            "attendees": attendees,
            "revenue": revenue,
        }

    return _cached(f"stats:event:{event_id}", compute)


def organizer_stats(db: Session, organizer_id: str) -> dict:
    def compute() -> dict:
        total_events = db.scalar(
            select(func.count(Event.id)).where(Event.organizer_id == organizer_id)
        )
        total_tickets, total_revenue = _paid_totals(db, Event.organizer_id == organizer_id)
        return {
            "organizer_id": organizer_id,
            "total_events": int(total_events or 0),
            "total_tickets": total_tickets,
            "total_attendees": total_tickets,
            "total_revenue": total_revenue,
        }

    return _cached(f"stats:organizer:{organizer_id}", compute)


def organizer_events(db: Session, organizer_id: str) -> list[dict]:
    """Per-event attendance and revenue rows for an organizer's dashboard."""

    def compute() -> list[dict]:
        paid = (
            select(
                Booking.event_id,
                func.sum(Booking.ticket_count).label("attendees"),
                func.sum(Booking.total_price).label("revenue"),
            )
            .where(Booking.payment_status == PaymentStatus.PAID.value)
            .group_by(Booking.event_id)
            .subquery()
        )
        stmt = (
            select(Event, paid.c.attendees, paid.c.revenue)
            .outerjoin(paid, paid.c.event_id == Event.id)
            .where(Event.organizer_id == organizer_id)
            .order_by(Event.starts_at, Event.id)
        )
        return [
            {
                "event_id": event.id,
                "title": event.title,
                "capacity": event.capacity,
                "attendees": int(attendees or 0),
                "revenue": _money(revenue),
            }
            for event, attendees, revenue in db.execute(stmt)
        ]

    return _cached(f"stats:organizer:{organizer_id}:events", compute)
