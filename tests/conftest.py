"""
Pytest configuration and shared fixtures.

Every test gets a fresh in-memory SQLite database inside an app context.
"""
from datetime import date, time
from decimal import Decimal

import pytest

from app import create_app
from config import TestConfig
from models import db, Booking, Payment, Service, Slot, User
from services.signing import sign_payment, sign_webhook_body
from services.store import SqlStore

DAY = date(2024, 5, 1)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return SqlStore(db.session)


@pytest.fixture
def user_id(app):
    user = User(email="asha@example.com", full_name="Asha Rao", phone_number="9800000000")
    db.session.add(user)
    db.session.commit()
    return user.id


@pytest.fixture
def service_id(app):
    service = Service(name="Recording Studio", price_per_hour=Decimal("1500"), duration=60)
    db.session.add(service)
    db.session.commit()
    return service.id


@pytest.fixture
def other_service_id(app):
    service = Service(name="Podcast Room", price_per_hour=Decimal("1000"), duration=60)
    db.session.add(service)
    db.session.commit()
    return service.id


@pytest.fixture
def booking_payload(user_id, service_id):
    return {
        "user_id": user_id,
        "service_id": service_id,
        "customer_name": "Asha Rao",
        "customer_email": "asha@example.com",
        "customer_phone": "9800000000",
        "date": "2024-05-01",
        "start_time": "10:00",
        "end_time": "11:00",
        "total_amount": 1500,
        "advance_amount": 500,
    }


@pytest.fixture
def make_booking(user_id, service_id):
    """Insert a booking with one slot directly, bypassing the manager."""
    def _make(start=time(10, 0), end=time(11, 0), day=DAY, status="confirmed",
              payment_status="paid", service=None):
        booking = Booking(
            user_id=user_id,
            service_id=service or service_id,
            customer_name="Existing Customer",
            customer_email="existing@example.com",
            date=day,
            start_time=start,
            end_time=end,
            total_amount=Decimal("1500"),
            advance_amount=Decimal("500"),
            status=status,
            payment_status=payment_status,
        )
        booking.slots.append(Slot(date=day, start_time=start, end_time=end))
        db.session.add(booking)
        db.session.commit()
        return booking.id

    return _make


@pytest.fixture
def make_payment():
    def _make(booking_id, order_id="order_9A33XWu170gUtm", status="created", amount=Decimal("500")):
        payment = Payment(booking_id=booking_id, gateway_order_id=order_id, amount=amount, status=status)
        db.session.add(payment)
        db.session.commit()
        return payment.id

    return _make


@pytest.fixture
def sign():
    def _sign(order_id, payment_id):
        return sign_payment(TestConfig.PAYMENT_KEY_SECRET, order_id, payment_id)

    return _sign


@pytest.fixture
def sign_body():
    def _sign(raw_body: bytes):
        return sign_webhook_body(TestConfig.PAYMENT_WEBHOOK_SECRET, raw_body)

    return _sign
