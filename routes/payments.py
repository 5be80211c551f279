from flask import Blueprint, request, jsonify

from services.notifications import ChangeNotifier
from services.payment_confirmation import PaymentConfirmationProcessor
from utils.audit import log_event
from utils.components import get_store, payment_secret

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


def _first(data: dict, *keys):
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


@payments_bp.post("/confirm")
def confirm_payment():
    data = request.get_json(silent=True) or {}
    order_id = _first(data, "orderId", "order_id", "razorpay_order_id")
    payment_id = _first(data, "paymentId", "payment_id", "razorpay_payment_id")
    signature = _first(data, "signature", "razorpay_signature")

    processor = PaymentConfirmationProcessor(get_store(), payment_secret, ChangeNotifier())
    result = processor.confirm(order_id, payment_id, signature)

    if not result.already_processed:
        log_event(
            "PAYMENT_CAPTURED",
            entity="payment",
            entity_id=result.payment_record_id,
            metadata={"order_id": order_id, "booking_id": result.booking_id},
        )
    return jsonify(result.to_dict()), 200
