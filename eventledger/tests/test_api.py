"""
Test API endpoints.
"""
import json
from concurrent.futures import ThreadPoolExecutor

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from eventledger.main import app
from eventledger.models.bookings import Booking, PaymentStatus
from eventledger.services.checkout import PaymentProvider, get_payment_provider, sign_webhook_payload

ORGANIZER = {"X-Organizer-Id": "org-1"}


def attendee(attendee_id: str) -> dict:
    return {"X-Attendee-Id": attendee_id}


def send_webhook(client: TestClient, booking_id: int, outcome: str, reference: str, signature: str | None = None):
    body = json.dumps({"booking_id": booking_id, "outcome": outcome, "reference": reference}).encode()
    headers = {"Content-Type": "application/json"}
    headers["X-Payment-Signature"] = signature if signature is not None else sign_webhook_payload(body)
    return client.post("/payments/webhook", content=body, headers=headers)


class TestEventEndpoints:
    """Test event-related API endpoints."""

    def test_create_event(self, client: TestClient):
        response = client.post(
            "/event",
            json={"title": "API Test Event", "capacity": 100, "price": "12.50"},
            headers=ORGANIZER,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "API Test Event"
        assert data["organizer_id"] == "org-1"
        assert data["capacity"] == 100
        assert data["reserved_count"] == 0
        assert data["spots_left"] == 100
        assert "id" in data

    def test_create_event_requires_organizer(self, client: TestClient):
        response = client.post("/event", json={"title": "Test", "capacity": 10})
        assert response.status_code == 403

    def test_create_event_validation(self, client: TestClient):
        response = client.post("/event", json={"title": "Test"}, headers=ORGANIZER)
        assert response.status_code == 422

        response = client.post("/event", json={"title": "Test", "capacity": 0}, headers=ORGANIZER)
        assert response.status_code == 422

        response = client.post("/event", json={"title": "Test", "capacity": 5, "price": "-1"}, headers=ORGANIZER)
        assert response.status_code == 422

    def test_get_event_stats(self, client: TestClient, make_event):
        event = make_event(capacity=10, price="0")
        client.post("/book", json={"event_id": event.id, "ticket_count": 4}, headers=attendee("a"))

        response = client.get(f"/event/{event.id}/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["event_id"] == event.id
        assert data["attendees"] == 4
        assert data["spots_left"] == 6

    def test_get_event_stats_not_found(self, client: TestClient):
        response = client.get("/event/99999/stats")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "EVENT_NOT_FOUND"

    def test_list_event_bookings(self, client: TestClient, make_event):
        event = make_event(capacity=10, price="5.00", organizer_id="org-1")
        for name in ("a", "b"):
            client.post("/book", json={"event_id": event.id}, headers=attendee(name))

        response = client.get(f"/event/{event.id}/bookings", headers=ORGANIZER)

        assert response.status_code == 200
        assert {b["attendee_id"] for b in response.json()} == {"a", "b"}

    def test_list_event_bookings_other_organizer(self, client: TestClient, make_event):
        event = make_event(organizer_id="org-1")
        response = client.get(f"/event/{event.id}/bookings", headers={"X-Organizer-Id": "org-2"})
        assert response.status_code == 403


class TestBookingEndpoints:
    """Test booking-related API endpoints."""

    def test_book_free_event(self, client: TestClient, make_event):
        event = make_event(capacity=10, price="0")

        response = client.post("/book", json={"event_id": event.id, "ticket_count": 2}, headers=attendee("user-42"))

        assert response.status_code == 200
        data = response.json()
        assert data["event_id"] == event.id
        assert data["attendee_id"] == "user-42"
        assert data["payment_status"] == PaymentStatus.PAID.value
        assert data["ticket_code"].startswith("TKT.")
        assert data["checkout_url"] is None

    def test_book_priced_event_returns_checkout_url(self, client: TestClient, make_event):
        event = make_event(capacity=10, price="20.00")

        response = client.post("/book", json={"event_id": event.id, "ticket_count": 2}, headers=attendee("user-1"))

        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == PaymentStatus.PENDING.value
        assert data["total_price"] == "40.00"
        assert data["ticket_code"] is None
        assert data["checkout_url"].startswith("/mockpay/mock_")

    def test_provider_failure_keeps_reservation(self, client: TestClient, make_event, db_session: Session):
        class BrokenProvider(PaymentProvider):
            def create_checkout_session(self, **kwargs):
                raise RuntimeError("provider down")

        app.dependency_overrides[get_payment_provider] = lambda: BrokenProvider()
        event = make_event(capacity=10, price="20.00")

        response = client.post("/book", json={"event_id": event.id}, headers=attendee("user-1"))

        assert response.status_code == 200
        assert response.json()["checkout_url"] is None
        assert response.json()["payment_status"] == PaymentStatus.PENDING.value
        db_session.refresh(event)
        assert event.reserved_count == 1

    def test_book_requires_attendee(self, client: TestClient, make_event):
        event = make_event()
        response = client.post("/book", json={"event_id": event.id})
        assert response.status_code == 422

    def test_book_sold_out(self, client: TestClient, make_event):
        event = make_event(capacity=1, reserved_count=1)

        response = client.post("/book", json={"event_id": event.id}, headers=attendee("user-99"))

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "CAPACITY_EXCEEDED"
        assert "sold out" in detail["message"].lower()

    def test_book_invalid_quantity(self, client: TestClient, make_event):
        event = make_event()

        response = client.post("/book", json={"event_id": event.id, "ticket_count": 0}, headers=attendee("a"))

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_QUANTITY"

    def test_book_unknown_event(self, client: TestClient):
        response = client.post("/book", json={"event_id": 99999}, headers=attendee("a"))
        assert response.status_code == 404

    def test_read_own_booking_only(self, client: TestClient, make_event):
        event = make_event()
        booking_id = client.post("/book", json={"event_id": event.id}, headers=attendee("a")).json()["id"]

        assert client.get(f"/book/{booking_id}", headers=attendee("a")).status_code == 200
        assert client.get(f"/book/{booking_id}", headers=attendee("b")).status_code == 404

    def test_refund_booking(self, client: TestClient, make_event):
        event = make_event(capacity=3, price="0", organizer_id="org-1")
        booking_id = client.post("/book", json={"event_id": event.id, "ticket_count": 3}, headers=attendee("a")).json()["id"]

        response = client.post(f"/book/{booking_id}/refund", headers=ORGANIZER)

        assert response.status_code == 200
        assert response.json()["payment_status"] == PaymentStatus.REFUNDED.value
        assert client.get(f"/event/{event.id}/stats").json()["spots_left"] == 3

    def test_refund_pending_booking_conflicts(self, client: TestClient, make_event):
        event = make_event(price="10.00", organizer_id="org-1")
        booking_id = client.post("/book", json={"event_id": event.id}, headers=attendee("a")).json()["id"]

        response = client.post(f"/book/{booking_id}/refund", headers=ORGANIZER)

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INCONSISTENT_TRANSITION"

    def test_refund_requires_event_organizer(self, client: TestClient, make_event):
        event = make_event(price="0", organizer_id="org-1")
        booking_id = client.post("/book", json={"event_id": event.id}, headers=attendee("a")).json()["id"]

        response = client.post(f"/book/{booking_id}/refund", headers={"X-Organizer-Id": "org-2"})
        assert response.status_code == 403

    def test_concurrent_api_bookings(self, client: TestClient, make_event):
        event = make_event(capacity=3, price="0")

        def book_via_api(n: int):
            response = client.post("/book", json={"event_id": event.id}, headers=attendee(f"user-{n}"))
            return response.status_code

        with ThreadPoolExecutor(max_workers=10) as executor:
            results = list(executor.map(book_via_api, range(10)))

        assert results.count(200) == 3
        assert results.count(409) == 7


class TestPaymentWebhook:
    """Test the payment provider callback."""

    def test_success_marks_booking_paid(self, client: TestClient, make_event):
        event = make_event(price="20.00")
        booking_id = client.post("/book", json={"event_id": event.id}, headers=attendee("a")).json()["id"]

        response = send_webhook(client, booking_id, "succeeded", "evt_1")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "booking_id": booking_id, "payment_status": "paid"}
        booking = client.get(f"/book/{booking_id}", headers=attendee("a")).json()
        assert booking["ticket_code"] is not None

    def test_replay_is_acknowledged_without_change(self, client: TestClient, make_event, db_session: Session):
        event = make_event(price="20.00")
        booking_id = client.post("/book", json={"event_id": event.id}, headers=attendee("a")).json()["id"]
        send_webhook(client, booking_id, "succeeded", "evt_1")
        code = db_session.get(Booking, booking_id).ticket_code

        response = send_webhook(client, booking_id, "succeeded", "evt_1")

        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"
        db_session.expire_all()
        assert db_session.get(Booking, booking_id).ticket_code == code

    def test_stale_callback_is_ignored(self, client: TestClient, make_event):
        event = make_event(price="20.00")
        booking_id = client.post("/book", json={"event_id": event.id}, headers=attendee("a")).json()["id"]
        send_webhook(client, booking_id, "failed", "evt_1")

        response = send_webhook(client, booking_id, "succeeded", "evt_2")

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    def test_bad_signature_rejected(self, client: TestClient, make_event):
        event = make_event(price="20.00")
        booking_id = client.post("/book", json={"event_id": event.id}, headers=attendee("a")).json()["id"]

        response = send_webhook(client, booking_id, "succeeded", "evt_1", signature="forged")

        assert response.status_code == 400
        booking = client.get(f"/book/{booking_id}", headers=attendee("a")).json()
        assert booking["payment_status"] == PaymentStatus.PENDING.value

    def test_unknown_booking(self, client: TestClient):
        response = send_webhook(client, 99999, "succeeded", "evt_1")
        assert response.status_code == 404

    def test_malformed_body(self, client: TestClient):
        body = b'{"booking_id": 1}'
        response = client.post(
            "/payments/webhook", content=body, headers={"X-Payment-Signature": sign_webhook_payload(body)}
        )
        assert response.status_code == 422


class TestReportEndpoints:
    """Test report-related API endpoints."""

    def test_organizer_report(self, client: TestClient, make_event):
        concert = make_event(title="Concert", capacity=10, price="25.00", organizer_id="org-1")
        meetup = make_event(title="Meetup", capacity=10, price="0", organizer_id="org-1")
        paid_id = client.post("/book", json={"event_id": concert.id, "ticket_count": 2}, headers=attendee("a")).json()["id"]
        send_webhook(client, paid_id, "succeeded", "evt_1")
        client.post("/book", json={"event_id": concert.id}, headers=attendee("b"))  # pending
        client.post("/book", json={"event_id": meetup.id, "ticket_count": 3}, headers=attendee("c"))

        response = client.get("/report/organizer/org-1")

        assert response.status_code == 200
        data = response.json()
        assert data["total_events"] == 2
        assert data["total_tickets"] == 5
        assert data["total_attendees"] == 5
        assert data["total_revenue"] == "50.00"

        rows = client.get("/report/organizer/org-1/events").json()
        assert {row["title"]: row["attendees"] for row in rows} == {"Concert": 2, "Meetup": 3}

    def test_organizer_report_empty(self, client: TestClient):
        response = client.get("/report/organizer/nobody")

        assert response.status_code == 200
        assert response.json()["total_events"] == 0

    def test_event_report_not_found(self, client: TestClient):
        response = client.get("/report/event/99999")
        assert response.status_code == 404
