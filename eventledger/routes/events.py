from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from eventledger.database.db import get_db
from eventledger.models.events import Event
from eventledger.routes.deps import get_organizer_id, http_error
from eventledger.schemas.bookings import BookingOut
from eventledger.schemas.events import EventCreate, EventOut, EventStatsOut
from eventledger.services.bookings import get_event, list_bookings
from eventledger.services.errors import BookingError
from eventledger.services.stats import event_stats as get_event_stats

router = APIRouter(prefix="/event", tags=["events"])


@router.post("", response_model=EventOut)
def create_event(
    payload: EventCreate,
    organizer_id: str = Depends(get_organizer_id),
    db: Session = Depends(get_db),
):
    event = Event(
        title=payload.title,
        organizer_id=organizer_id,
        capacity=payload.capacity,
        price=payload.price,
        starts_at=payload.starts_at,
        reserved_count=0,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@router.get("/{event_id}/stats", response_model=EventStatsOut)
def event_stats(event_id: int, db: Session = Depends(get_db)):
    try:
        return get_event_stats(db, event_id)
    except BookingError as e:
        raise http_error(e)


@router.get("/{event_id}/bookings", response_model=list[BookingOut])
def event_bookings(
    event_id: int,
    organizer_id: str = Depends(get_organizer_id),
    db: Session = Depends(get_db),
):
    try:
        event = get_event(db, event_id)
        if event.organizer_id != organizer_id:
            raise HTTPException(status_code=403, detail="Not the organizer of this event")
        return list_bookings(db, event_id)
    except BookingError as e:
        raise http_error(e)
