"""
Row-level access to the booking tables.

Each write commits on its own: callers get no cross-table transaction and
must compensate for partial multi-step writes themselves. Any SQLAlchemy
failure rolls the session back and surfaces as ``StoreError``.
"""
import logging
from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.blocked_slot import BlockedSlot
from models.booking import Booking
from models.payment import Payment
from models.service import Service
from models.slot import Slot
from models.user import User
from models.webhook_event import WebhookEvent
from services.errors import StoreError

logger = logging.getLogger(__name__)


class SqlStore:
    def __init__(self, session):
        self.session = session

    def _read(self, what, fn):
        try:
            return fn()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning("Store read failed (%s): %s", what, exc)
            raise StoreError(f"Could not read {what}", retryable=True) from exc

    def _write(self, what, fn):
        try:
            result = fn()
            self.session.commit()
            return result
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning("Store write failed (%s): %s", what, exc)
            raise StoreError(f"Could not write {what}", retryable=False) from exc

    # ---------- references ----------
    def user_exists(self, user_id) -> bool:
        return self._read("users", lambda: self.session.get(User, user_id) is not None)

    def service_exists(self, service_id) -> bool:
        return self._read("services", lambda: self.session.get(Service, service_id) is not None)

    # ---------- availability ----------
    def confirmed_slots(self, service_id, day):
        """Slots of confirmed and paid bookings for one service on one date."""
        return self._read("booking slots", lambda: (
            Slot.query
            .join(Booking, Slot.booking_id == Booking.id)
            .filter(
                Slot.date == day,
                Booking.service_id == service_id,
                Booking.status == "confirmed",
                Booking.payment_status == "paid",
            )
            .order_by(Slot.start_time.asc())
            .all()
        ))

    def blocked_slots(self, day, service_id=None):
        """Blocks on a date. With a service id, only global blocks and that service's."""
        def query():
            q = BlockedSlot.query.filter(BlockedSlot.date == day)
            if service_id is not None:
                q = q.filter(or_(BlockedSlot.service_id.is_(None), BlockedSlot.service_id == service_id))
            return q.order_by(BlockedSlot.start_time.asc()).all()

        return self._read("blocked slots", query)

    # ---------- bookings ----------
    def get_booking(self, booking_id):
        return self._read("bookings", lambda: self.session.get(Booking, booking_id))

    def booking_slots(self, booking_id):
        return self._read("booking slots", lambda: (
            Slot.query.filter_by(booking_id=booking_id).order_by(Slot.date.asc(), Slot.start_time.asc()).all()
        ))

    def find_booking_by_idempotency_key(self, key):
        return self._read("bookings", lambda: Booking.query.filter_by(idempotency_key=key).first())

    def count_slots(self, booking_id) -> int:
        return self._read("booking slots", lambda: Slot.query.filter_by(booking_id=booking_id).count())

    def insert_booking(self, fields: dict) -> int:
        now = datetime.utcnow()

        def insert():
            booking = Booking(
                **fields,
                status="pending",
                payment_status="pending",
                created_at=now,
                updated_at=now,
            )
            self.session.add(booking)
            self.session.flush()
            return booking.id

        return self._write("booking", insert)

    def insert_slots(self, booking_id, slots) -> int:
        now = datetime.utcnow()

        def insert():
            for s in slots:
                self.session.add(Slot(
                    booking_id=booking_id,
                    date=s.date,
                    start_time=s.start_time,
                    end_time=s.end_time,
                    created_at=now,
                ))
            return len(slots)

        return self._write("booking slots", insert)

    def delete_booking(self, booking_id) -> None:
        def delete():
            Slot.query.filter_by(booking_id=booking_id).delete(synchronize_session=False)
            Booking.query.filter_by(id=booking_id).delete(synchronize_session=False)

        self._write("booking delete", delete)

    def confirm_booking(self, booking_id, when: datetime) -> None:
        self._write("booking confirmation", lambda: (
            Booking.query
            .filter_by(id=booking_id)
            .update(
                {"status": "confirmed", "payment_status": "paid", "updated_at": when},
                synchronize_session=False,
            )
        ))

    def release_booking(self, booking_id, when: datetime) -> bool:
        """Cancel a pending booking whose slots were taken; its payment is due for refund."""
        updated = self._write("booking release", lambda: (
            Booking.query
            .filter(Booking.id == booking_id, Booking.status == "pending")
            .update(
                {"status": "cancelled", "payment_status": "failed", "updated_at": when},
                synchronize_session=False,
            )
        ))
        return updated == 1

    def mark_booking_payment_failed(self, booking_id, when: datetime) -> None:
        # Never touch a booking that already completed its transition
        self._write("booking payment failure", lambda: (
            Booking.query
            .filter(Booking.id == booking_id, Booking.payment_status != "paid")
            .update({"payment_status": "failed", "updated_at": when}, synchronize_session=False)
        ))

    # ---------- payments ----------
    def get_payment_by_order(self, order_id):
        return self._read("payments", lambda: Payment.query.filter_by(gateway_order_id=order_id).first())

    def capture_payment(self, payment_id, gateway_payment_id, when: datetime) -> bool:
        """
        Conditional transition to captured. Returns False when the row was
        already captured, i.e. another delivery won.
        """
        updated = self._write("payment capture", lambda: (
            Payment.query
            .filter(Payment.id == payment_id, Payment.status != "captured")
            .update(
                {"status": "captured", "gateway_payment_id": gateway_payment_id, "updated_at": when},
                synchronize_session=False,
            )
        ))
        return updated == 1

    def fail_payment(self, payment_id, gateway_payment_id, when: datetime) -> bool:
        updated = self._write("payment failure", lambda: (
            Payment.query
            .filter(Payment.id == payment_id, Payment.status == "created")
            .update(
                {"status": "failed", "gateway_payment_id": gateway_payment_id, "updated_at": when},
                synchronize_session=False,
            )
        ))
        return updated == 1

    def captured_unconfirmed_payments(self, limit: int):
        """(payment id, booking id) pairs stuck between capture and booking confirmation."""
        return self._read("payments", lambda: [
            (row.id, row.booking_id)
            for row in (
                self.session.query(Payment.id, Payment.booking_id)
                .join(Booking, Payment.booking_id == Booking.id)
                .filter(Payment.status == "captured", Booking.status == "pending")
                .order_by(Payment.updated_at.asc())
                .limit(limit)
                .all()
            )
        ])

    # ---------- webhooks ----------
    def record_webhook_event(self, event_id, event_type) -> bool:
        """Insert-once. Returns False if the event id was seen before."""
        try:
            self.session.add(WebhookEvent(event_id=event_id, event_type=event_type))
            self.session.commit()
            return True
        except IntegrityError:
            self.session.rollback()
            return False
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError("Could not write webhook event", retryable=False) from exc

    def forget_webhook_event(self, event_id) -> None:
        self._write("webhook event delete", lambda: (
            WebhookEvent.query.filter_by(event_id=event_id).delete(synchronize_session=False)
        ))

    # ---------- blocked slots ----------
    def insert_blocked_slot(self, fields: dict) -> int:
        now = datetime.utcnow()

        def insert():
            block = BlockedSlot(**fields, created_at=now, updated_at=now)
            self.session.add(block)
            self.session.flush()
            return block.id

        return self._write("blocked slot", insert)

    def delete_blocked_slot(self, block_id) -> bool:
        deleted = self._write("blocked slot delete", lambda: (
            BlockedSlot.query.filter_by(id=block_id).delete(synchronize_session=False)
        ))
        return deleted == 1

    # ---------- reporting ----------
    def booking_counts_by_status(self) -> dict:
        return self._read("bookings", lambda: dict(
            self.session.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
        ))

    def paid_revenue(self):
        return self._read("bookings", lambda: (
            self.session.query(func.coalesce(func.sum(Booking.total_amount), 0))
            .filter(Booking.payment_status == "paid")
            .scalar()
        ))

    def count_users(self) -> int:
        return self._read("users", lambda: User.query.count())

    def count_services(self) -> int:
        return self._read("services", lambda: Service.query.count())

    def count_blocked_slots(self) -> int:
        return self._read("blocked slots", lambda: BlockedSlot.query.count())
