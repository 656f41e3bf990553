from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class BookRequest(BaseModel):
    event_id: int = Field(ge=1)
    # quantity rules live in the admission controller
    ticket_count: int = 1


class BookingOut(BaseModel):
    id: int
    event_id: int
    attendee_id: str
    ticket_count: int
    total_price: Decimal
    payment_status: str
    ticket_code: str | None
    failure_reason: str | None
    expires_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class BookingCreatedOut(BookingOut):
    checkout_url: str | None = None
