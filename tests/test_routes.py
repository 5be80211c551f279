import json
from datetime import time

import pytest
from sqlalchemy.exc import OperationalError

from models import db, AuditLog, BlockedSlot, Booking, Payment
from services.errors import StoreError
from services.reporting import AdminReporter
from services.store import SqlStore
from tests.conftest import DAY

ORDER_ID = "order_Fj4Xh2kq9Lm3Zp"
GATEWAY_PAYMENT_ID = "pay_Fj4Y0aB7cD8eFg"


def test_health_and_security_headers(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


# ---------- POST /bookings ----------
def test_create_booking_201(client, booking_payload):
    resp = client.post("/bookings", json=booking_payload)

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["slotsWritten"] == 1
    assert db.session.get(Booking, body["bookingId"]) is not None
    assert AuditLog.query.filter_by(action="BOOKING_CREATE").count() == 1


def test_create_booking_missing_fields_400(client, booking_payload):
    del booking_payload["service_id"]
    del booking_payload["end_time"]

    resp = client.post("/bookings", json=booking_payload)

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["kind"] == "validation_error"
    assert sorted(body["missing_fields"]) == ["end_time", "service_id"]


def test_create_booking_non_json_body_400(client):
    resp = client.post("/bookings", data="user_id=1", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "validation_error"


def test_create_booking_invalid_reference_400(client, booking_payload):
    booking_payload["service_id"] = 4040

    resp = client.post("/bookings", json=booking_payload)

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Invalid service_id", "kind": "invalid_reference", "field": "service_id"}


def test_create_booking_conflict_409(client, booking_payload):
    db.session.add(BlockedSlot(date=DAY, start_time=time(10, 30), end_time=time(11, 30)))
    db.session.commit()

    resp = client.post("/bookings", json=booking_payload)

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["kind"] == "slot_conflict"
    assert len(body["conflicts"]) == 1
    assert body["conflicts"][0]["source"] == "blocked"
    assert body["conflicts"][0]["conflict_start"] == "10:30:00"


def test_create_booking_replay_200(client, booking_payload):
    booking_payload["idempotency_key"] = "retry-after-timeout"
    first = client.post("/bookings", json=booking_payload)
    second = client.post("/bookings", json=booking_payload)

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.get_json()["replayed"] is True
    assert second.get_json()["bookingId"] == first.get_json()["bookingId"]


def test_store_error_500_hides_details(client, booking_payload, monkeypatch):
    def broken(self, booking_id, slots):
        raise StoreError("Could not write booking slots") from OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(SqlStore, "insert_slots", broken)

    resp = client.post("/bookings", json=booking_payload)

    assert resp.status_code == 500
    body = resp.get_json()
    assert body["kind"] == "store_error"
    assert "disk" not in json.dumps(body)
    assert Booking.query.count() == 0


# ---------- POST /availability ----------
def test_availability_endpoint(client, service_id, make_booking):
    make_booking(time(10), time(11))

    resp = client.post("/availability", json={
        "service_id": service_id,
        "slots": [
            {"date": "2024-05-01", "start": "11:00", "end": "12:00"},
            {"date": "2024-05-01", "start": "10:30", "end": "11:30"},
        ],
    })

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["free"] is False
    assert [c["start_time"] for c in body["conflicts"]] == ["10:30:00"]


# ---------- POST /payments/confirm ----------
@pytest.fixture
def pending_order(make_booking, make_payment):
    booking_id = make_booking(time(10), time(11), status="pending", payment_status="pending")
    payment_id = make_payment(booking_id, order_id=ORDER_ID)
    return booking_id, payment_id


def test_confirm_payment_200_then_already_processed(client, pending_order, sign):
    booking_id, payment_id = pending_order
    body = {"orderId": ORDER_ID, "paymentId": GATEWAY_PAYMENT_ID, "signature": sign(ORDER_ID, GATEWAY_PAYMENT_ID)}

    first = client.post("/payments/confirm", json=body)
    second = client.post("/payments/confirm", json=body)

    assert first.status_code == 200
    assert first.get_json() == {
        "verified": True,
        "bookingId": booking_id,
        "paymentId": payment_id,
        "status": "captured",
        "alreadyProcessed": False,
    }
    assert second.status_code == 200
    assert second.get_json()["alreadyProcessed"] is True
    assert AuditLog.query.filter_by(action="PAYMENT_CAPTURED").count() == 1


def test_confirm_payment_accepts_gateway_field_names(client, pending_order, sign):
    resp = client.post("/payments/confirm", json={
        "razorpay_order_id": ORDER_ID,
        "razorpay_payment_id": GATEWAY_PAYMENT_ID,
        "razorpay_signature": sign(ORDER_ID, GATEWAY_PAYMENT_ID),
    })
    assert resp.status_code == 200


def test_confirm_payment_bad_signature_400(client, pending_order):
    resp = client.post("/payments/confirm", json={
        "orderId": ORDER_ID, "paymentId": GATEWAY_PAYMENT_ID, "signature": "0" * 64,
    })
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Invalid signature", "kind": "invalid_signature"}
    assert db.session.get(Payment, pending_order[1]).status == "created"


def test_confirm_payment_missing_fields_400(client):
    resp = client.post("/payments/confirm", json={"orderId": ORDER_ID})
    assert resp.status_code == 400
    assert resp.get_json()["missing_fields"] == ["payment_id", "signature"]


def test_confirm_payment_unknown_order_404(client, sign):
    resp = client.post("/payments/confirm", json={
        "orderId": "order_nope", "paymentId": GATEWAY_PAYMENT_ID, "signature": sign("order_nope", GATEWAY_PAYMENT_ID),
    })
    assert resp.status_code == 404
    assert resp.get_json()["kind"] == "not_found"


def test_confirm_payment_partial_transition_500(client, pending_order, sign, monkeypatch):
    def broken(self, booking_id, when):
        raise StoreError("Could not write booking confirmation")

    monkeypatch.setattr(SqlStore, "confirm_booking", broken)

    resp = client.post("/payments/confirm", json={
        "orderId": ORDER_ID, "paymentId": GATEWAY_PAYMENT_ID, "signature": sign(ORDER_ID, GATEWAY_PAYMENT_ID),
    })

    assert resp.status_code == 500
    body = resp.get_json()
    assert body["kind"] == "inconsistency"
    assert "booking_id" not in body


# ---------- POST /webhooks/payments ----------
def test_webhook_route(client, pending_order, sign_body):
    raw = json.dumps({
        "id": "evt_route_1",
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": GATEWAY_PAYMENT_ID, "order_id": ORDER_ID}}},
    }).encode()

    resp = client.post("/webhooks/payments", data=raw, content_type="application/json",
                       headers={"X-Razorpay-Signature": sign_body(raw)})
    again = client.post("/webhooks/payments", data=raw, content_type="application/json",
                        headers={"X-Razorpay-Signature": sign_body(raw)})
    forged = client.post("/webhooks/payments", data=raw, content_type="application/json",
                         headers={"X-Razorpay-Signature": "deadbeef"})

    assert resp.status_code == 200
    assert resp.get_json() == {"received": True, "outcome": "processed"}
    assert again.get_json()["outcome"] == "duplicate"
    assert forged.status_code == 400
    assert db.session.get(Booking, pending_order[0]).status == "confirmed"


# ---------- /admin ----------
def test_admin_summary(client, make_booking, user_id, service_id):
    make_booking(time(9), time(10))
    make_booking(time(10), time(11), status="pending", payment_status="pending")
    make_booking(time(11), time(12), status="cancelled", payment_status="failed")

    resp = client.get("/admin/summary")

    assert resp.status_code == 200
    assert resp.get_json() == {
        "totalBookings": 3,
        "pendingBookings": 1,
        "confirmedBookings": 1,
        "cancelledBookings": 1,
        "totalRevenue": 1500.0,
        "totalUsers": 1,
        "totalServices": 1,
        "blockedSlots": 0,
    }


def test_admin_summary_store_error_500(client, monkeypatch):
    def broken(self):
        raise StoreError("Could not read bookings", retryable=True)

    monkeypatch.setattr(SqlStore, "booking_counts_by_status", broken)

    resp = client.get("/admin/summary")
    assert resp.status_code == 500
    assert resp.get_json()["kind"] == "store_error"


def test_blocked_slot_lifecycle(client, service_id):
    resp = client.post("/admin/blocked-slots", json={
        "date": "2024-05-01", "start_time": "10:00", "end_time": "12:00",
        "reason": "Equipment service", "service_id": service_id,
    })
    assert resp.status_code == 201
    block_id = resp.get_json()["id"]

    listed = client.get("/admin/blocked-slots?date=2024-05-01").get_json()
    assert [b["id"] for b in listed] == [block_id]
    assert listed[0]["reason"] == "Equipment service"

    assert client.delete(f"/admin/blocked-slots/{block_id}").status_code == 200
    assert client.delete(f"/admin/blocked-slots/{block_id}").status_code == 404
    assert client.get("/admin/blocked-slots?date=2024-05-01").get_json() == []


def test_blocked_slot_validation(client):
    assert client.get("/admin/blocked-slots").status_code == 400
    assert client.get("/admin/blocked-slots?date=May-1").status_code == 400

    resp = client.post("/admin/blocked-slots", json={"date": "2024-05-01", "start_time": "12:00", "end_time": "10:00"})
    assert resp.status_code == 400

    resp = client.post("/admin/blocked-slots", json={
        "date": "2024-05-01", "start_time": "10:00", "end_time": "12:00", "service_id": 77,
    })
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "invalid_reference"


def test_confirm_payment_for_taken_slot_409(client, make_booking, make_payment, sign):
    make_booking(time(10), time(11))
    late = make_booking(time(10), time(11), status="pending", payment_status="pending")
    make_payment(late, order_id=ORDER_ID)

    resp = client.post("/payments/confirm", json={
        "orderId": ORDER_ID, "paymentId": GATEWAY_PAYMENT_ID, "signature": sign(ORDER_ID, GATEWAY_PAYMENT_ID),
    })

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["kind"] == "slot_taken"
    assert body["booking_id"] == late
    assert Booking.query.filter_by(status="confirmed").count() == 1


# ---------- error rendering ----------
def test_unknown_route_and_method_are_json(client):
    resp = client.get("/bookings")
    assert resp.status_code == 405
    assert resp.is_json
    assert resp.get_json()["kind"] == "method_not_allowed"

    resp = client.get("/no-such-page")
    assert resp.status_code == 404
    assert resp.get_json()["kind"] == "not_found"


def test_unexpected_error_is_json_500(client, monkeypatch):
    def broken(self):
        raise RuntimeError("reporter exploded")

    monkeypatch.setattr(AdminReporter, "summary", broken)

    resp = client.get("/admin/summary")

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error", "kind": "internal_error"}


def test_audit_write_failure_keeps_created_booking(client, booking_payload):
    AuditLog.__table__.drop(db.engine)

    resp = client.post("/bookings", json=booking_payload)

    assert resp.status_code == 201
    assert Booking.query.count() == 1
