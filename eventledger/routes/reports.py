from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eventledger.database.db import get_db
from eventledger.routes.deps import http_error
from eventledger.schemas.events import EventStatsOut
from eventledger.schemas.reports import OrganizerEventOut, OrganizerStatsOut
from eventledger.services.errors import BookingError
from eventledger.services.stats import event_stats, organizer_events, organizer_stats

router = APIRouter(prefix="/report", tags=["reports"])


@router.get("/organizer/{organizer_id}", response_model=OrganizerStatsOut)
def organizer_report(organizer_id: str, db: Session = Depends(get_db)):
    """Paid tickets and revenue across all of an organizer's events."""
    return organizer_stats(db, organizer_id)


@router.get("/organizer/{organizer_id}/events", response_model=list[OrganizerEventOut])
def organizer_events_report(organizer_id: str, db: Session = Depends(get_db)):
    return organizer_events(db, organizer_id)


@router.get("/event/{event_id}", response_model=EventStatsOut)
def event_report(event_id: int, db: Session = Depends(get_db)):
    try:
        return event_stats(db, event_id)
    except BookingError as e:
        raise http_error(e)
