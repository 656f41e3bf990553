from decimal import Decimal

from pydantic import BaseModel


class OrganizerStatsOut(BaseModel):
    organizer_id: str
    total_events: int
    total_tickets: int
    total_attendees: int
    total_revenue: Decimal


class OrganizerEventOut(BaseModel):
    event_id: int
    title: str
    capacity: int
    attendees: int
    revenue: Decimal
