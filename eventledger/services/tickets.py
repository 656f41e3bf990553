"""Ticket code issuance.

A ticket code is minted once, when a booking becomes paid, and binds the
event, the booking, the attendee and the issuance time::

    TKT.<payload>.<checksum>

``payload`` is unpadded base64url of ``event_id:booking_id:issued_ms:attendee_id``
and ``checksum`` the first 8 hex digits of its SHA-256. Booking ids are unique
across the ledger, so codes are too. ``parse_ticket_code`` recovers the parts
for audit; it does not authenticate a code.
"""

import base64
import binascii
import hashlib
import logging
from datetime import datetime, timezone
from typing import NamedTuple

from sqlalchemy.orm import Session

from eventledger.helpers import utcnow
from eventledger.models.bookings import Booking
from eventledger.services.errors import InvalidTicketCode

logger = logging.getLogger(__name__)

TICKET_CODE_PREFIX = "TKT"


class TicketCodeParts(NamedTuple):
    event_id: int
    booking_id: int
    attendee_id: str
    issued_at: datetime


def _checksum(payload: str) -> str:
    return hashlib.sha256(payload.encode("ascii")).hexdigest()[:8]


def make_ticket_code(*, event_id: int, booking_id: int, attendee_id: str, issued_at: datetime) -> str:
    issued_ms = int(issued_at.timestamp() * 1000)
    raw = f"{event_id}:{booking_id}:{issued_ms}:{attendee_id}"
    payload = base64.urlsafe_b64encode(raw.encode("utf-8")).rstrip(b"=").decode("ascii")
    return f"{TICKET_CODE_PREFIX}.{payload}.{_checksum(payload)}"


def parse_ticket_code(code: str) -> TicketCodeParts:
    try:
        prefix, payload, checksum = code.split(".")
    except ValueError:
        raise InvalidTicketCode() from None
    if prefix != TICKET_CODE_PREFIX or not payload or checksum != _checksum(payload):
        raise InvalidTicketCode()

    padded = payload + "=" * (-len(payload) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        event_id, booking_id, issued_ms, attendee_id = raw.split(":", 3)
        return TicketCodeParts(
            event_id=int(event_id),
            booking_id=int(booking_id),
            attendee_id=attendee_id,
            issued_at=datetime.fromtimestamp(int(issued_ms) / 1000, tz=timezone.utc),
        )
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise InvalidTicketCode() from None


def issue(db: Session, booking: Booking, *, issued_at: datetime | None = None) -> str:
    """Bind a ticket code to a paid booking, keeping any code it already has.

    The code is written through the caller's session and commits with the
    transition that made the booking paid.
    """
    if booking.ticket_code:
        return booking.ticket_code

    if booking.id is None:
        db.flush()
    booking.ticket_code = make_ticket_code(
        event_id=booking.event_id,
        booking_id=booking.id,
        attendee_id=booking.attendee_id,
        issued_at=issued_at or utcnow(),
    )
    db.flush()
    logger.info("Issued ticket code for booking %s (event %s)", booking.id, booking.event_id)
    return booking.ticket_code
