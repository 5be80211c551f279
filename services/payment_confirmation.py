"""
Payment confirmation callback handling.

The gateway redirect (and its webhook) may deliver the same capture more
than once, or concurrently. The payment row moves to captured through a
conditional update, so only one delivery performs the transition and every
other one reports ``already_processed``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from services.availability import AvailabilityChecker
from services.errors import (
    ConfigurationError,
    InconsistencyError,
    NotFoundError,
    SecurityError,
    SlotTakenError,
    StoreError,
    ValidationError,
)
from services.notifications import ChangeNotifier
from services.signing import verify_payment_signature

logger = logging.getLogger(__name__)


@dataclass
class ConfirmationResult:
    payment_record_id: int
    booking_id: Optional[int]
    status: str = "captured"
    already_processed: bool = False
    verified: bool = True

    def to_dict(self) -> dict:
        return {
            "verified": self.verified,
            "bookingId": self.booking_id,
            "paymentId": self.payment_record_id,
            "status": self.status,
            "alreadyProcessed": self.already_processed,
        }


class PaymentConfirmationProcessor:
    def __init__(self, store, secret_provider, notifier=None, checker=None):
        self.store = store
        self.secret_provider = secret_provider
        self.notifier = notifier or ChangeNotifier()
        self.checker = checker or AvailabilityChecker(store)

    def confirm(self, order_id, payment_id, signature) -> ConfirmationResult:
        inputs = {"order_id": order_id, "payment_id": payment_id, "signature": signature}
        missing = [name for name, value in inputs.items() if not value]
        if missing:
            raise ValidationError("Missing required payment verification parameters", missing_fields=missing)

        secret = self.secret_provider()
        if not secret:
            logger.error("Payment signing secret is not configured")
            raise ConfigurationError("Payment verification configuration error")

        if not verify_payment_signature(secret, str(order_id), str(payment_id), str(signature)):
            logger.warning("Signature mismatch for order %s", order_id)
            raise SecurityError()

        return self.apply_capture(str(order_id), str(payment_id))

    def apply_capture(self, order_id: str, payment_id: str) -> ConfirmationResult:
        """
        Capture transition for an already-authenticated delivery: payment
        captured, then its booking confirmed and paid. A booking whose slots
        were confirmed for someone else in the meantime is cancelled instead
        and ``SlotTakenError`` is raised; the captured payment then needs a
        refund.
        """
        payment = self.store.get_payment_by_order(order_id)
        if payment is None:
            raise NotFoundError("Payment not found")

        payment_row_id, booking_id = payment.id, payment.booking_id
        if payment.status == "captured":
            return ConfirmationResult(payment_row_id, booking_id, already_processed=True)

        now = datetime.utcnow()
        if not self.store.capture_payment(payment_row_id, payment_id, now):
            logger.info("Payment %s captured by a concurrent delivery", payment_row_id)
            return ConfirmationResult(payment_row_id, booking_id, already_processed=True)
        self.notifier.publish("payments", "UPDATE", payment_row_id)

        if booking_id is None:
            logger.warning("Payment %s captured without a linked booking", payment_row_id)
            return ConfirmationResult(payment_row_id, None)

        try:
            conflicts = settle_booking(self.store, self.checker, booking_id, now)
        except StoreError as exc:
            logger.error(
                "Payment %s (order %s) captured but booking %s not confirmed",
                payment_row_id, order_id, booking_id,
            )
            raise InconsistencyError(
                "confirm_booking",
                payment_id=payment_row_id,
                booking_id=booking_id,
                order_id=order_id,
            ) from exc
        self.notifier.publish("bookings", "UPDATE", booking_id)

        if conflicts:
            logger.warning(
                "Payment %s (order %s) captured but booking %s lost its slots; refund required",
                payment_row_id, order_id, booking_id,
            )
            raise SlotTakenError(conflicts, booking_id=booking_id)

        logger.info("Payment %s captured for booking %s", payment_row_id, booking_id)
        return ConfirmationResult(payment_row_id, booking_id)


def settle_booking(store, checker, booking_id, when) -> list:
    """
    Second half of a capture: confirm the booking unless its slots are no
    longer free. Returns the conflicts found; when there are any the booking
    is cancelled with payment_status failed and nothing is confirmed.
    """
    booking = store.get_booking(booking_id)
    if booking is None:
        return []
    slots = store.booking_slots(booking_id)
    conflicts = checker.check(booking.service_id, slots, exclude_booking_id=booking_id).conflicts
    if conflicts:
        store.release_booking(booking_id, when)
    else:
        store.confirm_booking(booking_id, when)
    return conflicts
