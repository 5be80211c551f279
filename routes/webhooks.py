from flask import Blueprint, request, jsonify

from services.notifications import ChangeNotifier
from services.payment_confirmation import PaymentConfirmationProcessor
from services.webhooks import WebhookProcessor
from utils.audit import log_event
from utils.components import get_store, payment_secret, webhook_secret

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")

SIGNATURE_HEADER = "X-Razorpay-Signature"


@webhook_bp.post("/payments")
def payment_webhook():
    store = get_store()
    confirmation = PaymentConfirmationProcessor(store, payment_secret, ChangeNotifier())
    processor = WebhookProcessor(store, confirmation, webhook_secret)

    outcome = processor.handle(request.get_data(), request.headers.get(SIGNATURE_HEADER))

    if outcome.outcome == "processed":
        log_event(
            "PAYMENT_WEBHOOK",
            entity="booking",
            entity_id=outcome.booking_id,
            metadata={"event_id": outcome.event_id, "event_type": outcome.event_type},
        )
    return jsonify(received=True, outcome=outcome.outcome), 200
