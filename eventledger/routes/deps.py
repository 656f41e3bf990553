from fastapi import Header, HTTPException

from eventledger.services.errors import (
    BookingError,
    BookingNotFound,
    CapacityExceeded,
    EventNotBookable,
    EventNotFound,
    InconsistentTransition,
    InvalidQuantity,
    InvalidSignature,
    Unavailable,
)

STATUS_BY_ERROR: dict[type[BookingError], int] = {
    InvalidQuantity: 400,
    InvalidSignature: 400,
    EventNotFound: 404,
    BookingNotFound: 404,
    CapacityExceeded: 409,
    EventNotBookable: 409,
    InconsistentTransition: 409,
    Unavailable: 503,
}


def http_error(exc: BookingError) -> HTTPException:
    status_code = STATUS_BY_ERROR.get(type(exc), 400)
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})


# Identity is resolved upstream by the auth layer and forwarded as headers.
def get_attendee_id(x_attendee_id: str = Header(min_length=1, max_length=64)) -> str:
    return x_attendee_id


def get_organizer_id(x_organizer_id: str | None = Header(default=None, max_length=64)) -> str:
    if not x_organizer_id:
        raise HTTPException(status_code=403, detail="Organizer access required")
    return x_organizer_id
