import hashlib
import hmac


def _hex_hmac(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def sign_payment(secret: str, order_id: str, payment_id: str) -> str:
    # Gateway checkout signature: HMAC-SHA256 over "order_id|payment_id"
    return _hex_hmac(secret, f"{order_id}|{payment_id}".encode("utf-8"))


def verify_payment_signature(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    expected = sign_payment(secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def sign_webhook_body(secret: str, raw_body: bytes) -> str:
    return _hex_hmac(secret, raw_body)


def verify_webhook_signature(secret: str, raw_body: bytes, signature: str) -> bool:
    expected = sign_webhook_body(secret, raw_body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
