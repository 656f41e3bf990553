import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from eventledger.database.db import get_db
from eventledger.routes.deps import http_error
from eventledger.schemas.payments import PaymentWebhook, WebhookAck
from eventledger.services.checkout import verify_webhook_signature
from eventledger.services.errors import (
    BookingError,
    BookingNotFound,
    InvalidSignature,
    StaleCallback,
)
from eventledger.services.payments import apply_payment_result

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook", response_model=WebhookAck)
async def payments_webhook(
    request: Request,
    x_payment_signature: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    payload = await request.body()
    try:
        verify_webhook_signature(payload, x_payment_signature)
    except InvalidSignature as e:
        logger.warning("Rejected payment webhook with bad signature")
        raise http_error(e)

    try:
        event = PaymentWebhook.model_validate_json(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))

    try:
        booking = await run_in_threadpool(
            apply_payment_result, db, event.booking_id, event.outcome, event.reference
        )
    except StaleCallback as e:
        # The attendee is redirected by the provider regardless; acknowledge
        # so the provider stops redelivering.
        logger.warning("Ignored payment webhook %s for booking %s: %s", event.reference, event.booking_id, e)
        return WebhookAck(status="ignored", booking_id=event.booking_id)
    except BookingNotFound as e:
        logger.warning("Payment webhook %s for unknown booking %s", event.reference, event.booking_id)
        raise http_error(e)
    except BookingError as e:
        raise http_error(e)

    return WebhookAck(status="ok", booking_id=booking.id, payment_status=booking.payment_status)
