from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# ---------- Event ----------
class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    capacity: int = Field(ge=1)
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    starts_at: datetime | None = None


class EventOut(BaseModel):
    id: int
    title: str
    organizer_id: str
    capacity: int
    price: Decimal
    starts_at: datetime | None
    reserved_count: int
    spots_left: int

    class Config:
        from_attributes = True


class EventStatsOut(BaseModel):
    event_id: int
    capacity: int
    reserved_count: int
    spots_left: int
    attendees: int
    revenue: Decimal
