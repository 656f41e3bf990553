from pydantic import BaseModel, Field

from eventledger.services.payments import PaymentOutcome


class PaymentWebhook(BaseModel):
    booking_id: int
    outcome: PaymentOutcome
    reference: str = Field(min_length=1, max_length=255)


class WebhookAck(BaseModel):
    status: str
    booking_id: int
    payment_status: str | None = None
