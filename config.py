import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def store_connect_args(uri: str, timeout_seconds: int) -> dict:
    """Driver-level connect and statement timeouts for the store engine."""
    if uri.startswith("sqlite"):
        # seconds to wait on a locked database before raising
        return {"timeout": timeout_seconds}
    if uri.startswith("postgresql"):
        return {
            "connect_timeout": timeout_seconds,
            "options": f"-c statement_timeout={timeout_seconds * 1000}",
        }
    return {}


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as studioslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "studioslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Store I/O: bounds the pool wait, the connect and each statement
    STORE_TIMEOUT_SECONDS = int(os.getenv("STORE_TIMEOUT_SECONDS", "10"))
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_timeout": STORE_TIMEOUT_SECONDS,
        "connect_args": store_connect_args(SQLALCHEMY_DATABASE_URI, STORE_TIMEOUT_SECONDS),
    }

    # Payment gateway (checkout callback signature + server-to-server webhook)
    PAYMENT_KEY_SECRET = os.getenv("PAYMENT_KEY_SECRET")
    PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET")

    # Reconciliation pass
    RECONCILE_BATCH_SIZE = int(os.getenv("RECONCILE_BATCH_SIZE", "100"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    # in-memory SQLite runs on a static pool, which takes no pool options
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": store_connect_args(SQLALCHEMY_DATABASE_URI, Config.STORE_TIMEOUT_SECONDS),
    }

    PAYMENT_KEY_SECRET = "test_key_secret"
    PAYMENT_WEBHOOK_SECRET = "test_webhook_secret"
    LOG_LEVEL = "DEBUG"
