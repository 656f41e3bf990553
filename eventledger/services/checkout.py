"""Boundary with the external payment provider.

The engine only asks the provider for a checkout session and later receives
its signed callback; it never speaks the provider's protocol itself.
"""

import base64
import hashlib
import hmac
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from urllib.parse import urlencode

from eventledger.core.config import settings
from eventledger.models.bookings import Booking
from eventledger.services.errors import InvalidSignature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    redirect_url: str


class PaymentProvider(ABC):
    @abstractmethod
    def create_checkout_session(
        self,
        *,
        booking_id: int,
        total_price: Decimal,
        success_redirect: str,
        cancel_redirect: str,
    ) -> CheckoutSession: ...


class MockPaymentProvider(PaymentProvider):
    """Local provider: hands out a hosted-checkout URL on this server."""

    def create_checkout_session(
        self,
        *,
        booking_id: int,
        total_price: Decimal,
        success_redirect: str,
        cancel_redirect: str,
    ) -> CheckoutSession:
        session_id = f"mock_{uuid.uuid4().hex}"
        query = urlencode(
            {
                "booking_id": booking_id,
                "amount": f"{total_price:.2f}",
                "success": success_redirect,
                "cancel": cancel_redirect,
            }
        )
        return CheckoutSession(session_id=session_id, redirect_url=f"/mockpay/{session_id}?{query}")


_provider: PaymentProvider = MockPaymentProvider()


def get_payment_provider() -> PaymentProvider:
    return _provider


def start_checkout(provider: PaymentProvider, booking: Booking) -> CheckoutSession | None:
    """
    Ask the provider for a checkout session for a committed pending booking.

    The reservation already holds the tickets, so a provider failure does not
    undo it: the error is logged and the booking is left for the reclaimer.
    """
    try:
        session = provider.create_checkout_session(
            booking_id=booking.id,
            total_price=booking.total_price,
            success_redirect=f"{settings.CHECKOUT_SUCCESS_URL}?booking_id={booking.id}",
            cancel_redirect=f"{settings.CHECKOUT_CANCEL_URL}?booking_id={booking.id}",
        )
    except Exception:
        logger.exception("Could not create checkout session for booking %s", booking.id)
        return None
    logger.info("Checkout session %s created for booking %s", session.session_id, booking.id)
    return session


def sign_webhook_payload(payload: bytes) -> str:
    mac = hmac.new(settings.PAYMENT_WEBHOOK_SECRET.encode(), payload, hashlib.sha256).digest()
    return base64.b64encode(mac).decode()


def verify_webhook_signature(payload: bytes, signature: str | None) -> None:
    if not signature or not hmac.compare_digest(sign_webhook_payload(payload), signature):
        raise InvalidSignature()
