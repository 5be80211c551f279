import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from services.errors import (
    BookingEngineError,
    ConfigurationError,
    InconsistencyError,
    NotFoundError,
    SecurityError,
    SlotTakenError,
    StoreError,
    ValidationError,
)
from services.signing import verify_webhook_signature

logger = logging.getLogger(__name__)


@dataclass
class WebhookOutcome:
    event_id: str
    event_type: str
    outcome: str  # processed, duplicate, ignored, slot_taken
    booking_id: Optional[int] = None


class WebhookProcessor:
    """
    Server-to-server gateway events. The raw body is authenticated with the
    webhook secret, each event id is processed once, and a capture runs the
    same transition as the checkout callback.
    """

    def __init__(self, store, confirmation, secret_provider):
        self.store = store
        self.confirmation = confirmation
        self.secret_provider = secret_provider

    def handle(self, raw_body: bytes, signature: Optional[str]) -> WebhookOutcome:
        secret = self.secret_provider()
        if not secret:
            logger.error("Webhook secret is not configured")
            raise ConfigurationError("Webhook secret not configured")
        if not signature:
            raise SecurityError("Missing signature header")
        if not verify_webhook_signature(secret, raw_body, signature):
            raise SecurityError()

        try:
            event = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Webhook body is not valid JSON") from None
        if not isinstance(event, dict):
            raise ValidationError("Webhook body must be a JSON object")

        event_id, event_type = event.get("id"), event.get("event")
        if not event_id or not event_type:
            raise ValidationError("Webhook event id and type are required")

        if not self.store.record_webhook_event(event_id, event_type):
            logger.info("Duplicate webhook event %s skipped", event_id)
            return WebhookOutcome(event_id, event_type, "duplicate")

        entity = ((event.get("payload") or {}).get("payment") or {}).get("entity") or {}
        try:
            if event_type == "payment.captured":
                return self._captured(event_id, event_type, entity)
            if event_type == "payment.failed":
                return self._failed(event_id, event_type, entity)
        except BookingEngineError:
            # let the gateway's retry reprocess this event
            self.store.forget_webhook_event(event_id)
            raise

        logger.info("Unhandled webhook event type %s", event_type)
        return WebhookOutcome(event_id, event_type, "ignored")

    def _captured(self, event_id, event_type, entity) -> WebhookOutcome:
        order_id, payment_id = entity.get("order_id"), entity.get("id")
        if not order_id or not payment_id:
            logger.warning("Webhook %s has no payment entity", event_id)
            return WebhookOutcome(event_id, event_type, "ignored")
        try:
            result = self.confirmation.apply_capture(order_id, payment_id)
        except NotFoundError:
            logger.warning("No payment record for order %s", order_id)
            return WebhookOutcome(event_id, event_type, "ignored")
        except SlotTakenError as exc:
            # capture and release are both recorded; a redelivery has nothing left to do
            return WebhookOutcome(event_id, event_type, "slot_taken", booking_id=exc.booking_id)
        outcome = "duplicate" if result.already_processed else "processed"
        return WebhookOutcome(event_id, event_type, outcome, booking_id=result.booking_id)

    def _failed(self, event_id, event_type, entity) -> WebhookOutcome:
        order_id = entity.get("order_id")
        payment = self.store.get_payment_by_order(order_id) if order_id else None
        if payment is None:
            logger.warning("No payment record for failed order %s", order_id)
            return WebhookOutcome(event_id, event_type, "ignored")

        payment_row_id, booking_id = payment.id, payment.booking_id
        now = datetime.utcnow()
        # a late failure never downgrades a capture; an already failed
        # payment re-applies the booking update in case it was lost
        if not self.store.fail_payment(payment_row_id, entity.get("id"), now) and payment.status != "failed":
            return WebhookOutcome(event_id, event_type, "ignored", booking_id=booking_id)
        self.confirmation.notifier.publish("payments", "UPDATE", payment_row_id)

        if booking_id is not None:
            try:
                self.store.mark_booking_payment_failed(booking_id, now)
            except StoreError as exc:
                logger.error(
                    "Payment %s (order %s) failed but booking %s not updated",
                    payment_row_id, order_id, booking_id,
                )
                raise InconsistencyError(
                    "mark_booking_failed",
                    payment_id=payment_row_id,
                    booking_id=booking_id,
                    order_id=order_id,
                ) from exc
            self.confirmation.notifier.publish("bookings", "UPDATE", booking_id)
        logger.info("Payment %s for order %s marked failed", payment_row_id, order_id)
        return WebhookOutcome(event_id, event_type, "processed", booking_id=booking_id)
