from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from eventledger.database.db import get_db
from eventledger.models.bookings import PaymentStatus
from eventledger.routes.deps import get_attendee_id, get_organizer_id, http_error
from eventledger.schemas.bookings import BookingCreatedOut, BookingOut, BookRequest
from eventledger.services.bookings import get_booking, reserve
from eventledger.services.checkout import PaymentProvider, get_payment_provider, start_checkout
from eventledger.services.errors import BookingError
from eventledger.services.payments import refund

router = APIRouter(prefix="/book", tags=["bookings"])


@router.post("", response_model=BookingCreatedOut)
def book_ticket(
    payload: BookRequest,
    attendee_id: str = Depends(get_attendee_id),
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    try:
        booking = reserve(
            db, event_id=payload.event_id, attendee_id=attendee_id, ticket_count=payload.ticket_count
        )
    except BookingError as e:
        raise http_error(e)

    out = BookingCreatedOut.model_validate(booking)
    # priced bookings continue at the provider; the reservation is already committed
    if booking.payment_status == PaymentStatus.PENDING.value:
        session = start_checkout(provider, booking)
        if session is not None:
            out.checkout_url = session.redirect_url
    return out


@router.get("/{booking_id}", response_model=BookingOut)
def read_booking(booking_id: int, attendee_id: str = Depends(get_attendee_id), db: Session = Depends(get_db)):
    try:
        booking = get_booking(db, booking_id)
    except BookingError as e:
        raise http_error(e)
    if booking.attendee_id != attendee_id:
        raise HTTPException(status_code=404, detail={"code": "BOOKING_NOT_FOUND", "message": "Booking not found."})
    return booking


@router.post("/{booking_id}/refund", response_model=BookingOut)
def refund_booking(
    booking_id: int,
    organizer_id: str = Depends(get_organizer_id),
    db: Session = Depends(get_db),
):
    try:
        booking = get_booking(db, booking_id)
        if booking.event.organizer_id != organizer_id:
            raise HTTPException(status_code=403, detail="Not the organizer of this event")
        return refund(db, booking_id)
    except BookingError as e:
        raise http_error(e)
