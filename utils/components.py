from flask import current_app

from models import db
from services.store import SqlStore


def get_store() -> SqlStore:
    # one store per request, bound to the request's scoped session
    return SqlStore(db.session)


def payment_secret():
    return current_app.config.get("PAYMENT_KEY_SECRET")


def webhook_secret():
    return current_app.config.get("PAYMENT_WEBHOOK_SECRET")
