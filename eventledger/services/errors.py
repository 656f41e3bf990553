"""Booking engine errors.

Every error carries a stable machine ``code`` and a user-safe ``message``.
Routes map them to HTTP responses; payment callback errors are only logged.
"""


class BookingError(Exception):
    code = "BOOKING_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class EventNotFound(BookingError):
    code = "EVENT_NOT_FOUND"

    def __init__(self, event_id: int) -> None:
        super().__init__("Event not found.")
        self.event_id = event_id


class BookingNotFound(BookingError):
    code = "BOOKING_NOT_FOUND"

    def __init__(self, booking_id: int) -> None:
        super().__init__("Booking not found.")
        self.booking_id = booking_id


class InvalidQuantity(BookingError):
    code = "INVALID_QUANTITY"

    def __init__(self, ticket_count: int) -> None:
        super().__init__("At least one ticket must be requested.")
        self.ticket_count = ticket_count


class CapacityExceeded(BookingError):
    code = "CAPACITY_EXCEEDED"

    def __init__(self, event_id: int, requested: int, remaining: int) -> None:
        if remaining <= 0:
            message = "Event is sold out."
        else:
            message = f"Only {remaining} ticket(s) left for this event."
        super().__init__(message)
        self.event_id = event_id
        self.requested = requested
        self.remaining = remaining


class EventNotBookable(BookingError):
    code = "EVENT_NOT_BOOKABLE"

    def __init__(self, event_id: int) -> None:
        super().__init__("Bookings are closed for this event.")
        self.event_id = event_id


class InconsistentTransition(BookingError):
    code = "INCONSISTENT_TRANSITION"

    def __init__(self, booking_id: int, current: str, target: str) -> None:
        super().__init__(f"Cannot move booking from {current} to {target}.")
        self.booking_id = booking_id
        self.current = current
        self.target = target


class StaleCallback(BookingError):
    code = "STALE_CALLBACK"

    def __init__(self, booking_id: int, external_reference: str) -> None:
        super().__init__("Payment callback does not match the settled booking.")
        self.booking_id = booking_id
        self.external_reference = external_reference


class InvalidTicketCode(BookingError):
    code = "INVALID_TICKET_CODE"

    def __init__(self) -> None:
        super().__init__("Ticket code is malformed.")


class InvalidSignature(BookingError):
    code = "INVALID_SIGNATURE"

    def __init__(self) -> None:
        super().__init__("Invalid webhook signature.")


class Unavailable(BookingError):
    code = "UNAVAILABLE"

    def __init__(self, message: str = "Booking is temporarily unavailable, please try again.") -> None:
        super().__init__(message)
