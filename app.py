import logging

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException
from config import Config
from routes import health_bp, booking_bp, payments_bp, webhook_bp, admin_bp

from models import db
from flask_migrate import Migrate
from services.errors import BookingEngineError, InconsistencyError, InvalidReferenceError

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.errorhandler(BookingEngineError)
    def handle_engine_error(exc):
        if isinstance(exc, InconsistencyError):
            logger.error("Inconsistent state at step %s: %s", exc.step, exc.context)
        elif exc.status_code >= 500:
            logger.error("%s: %s", exc.kind, exc.message, exc_info=exc.__cause__)

        body = exc.to_dict()
        # Raw store errors stay out of production responses
        if app.config.get("DEBUG") and exc.__cause__ is not None:
            body["detail"] = str(exc.__cause__)
        return jsonify(body), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        kind = (exc.name or "http_error").lower().replace(" ", "_")
        return jsonify(error=exc.description, kind=kind), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        body = {"error": "Internal server error", "kind": "internal_error"}
        if app.config.get("DEBUG"):
            body["detail"] = str(exc)
        return jsonify(body), 500

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        # JSON API only, the frontend is served separately
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
from datetime import date, time
import click
from services.reconciliation import PaymentReconciler
from services.schemas import BlockedSlotRequest
from utils.components import get_store
from utils.seed import seed_demo
from utils.audit import log_event

def register_cli(app):
    @app.cli.command("reconcile-payments")
    @click.option("--limit", type=int, default=None, help="Max payments to repair in one pass.")
    def reconcile_payments(limit):
        """Confirm bookings whose payment was captured but never confirmed."""
        batch = limit or app.config.get("RECONCILE_BATCH_SIZE", 100)
        report = PaymentReconciler(get_store()).run(limit=batch)
        for booking_id in report.repaired:
            log_event("BOOKING_RECONCILED", entity="booking", entity_id=booking_id)
        for booking_id in report.released:
            log_event("BOOKING_RELEASED", entity="booking", entity_id=booking_id, metadata={"reason": "slot_taken"})
        click.echo(
            f"Repaired {len(report.repaired)} booking(s), {len(report.failed)} failed, "
            f"{len(report.released)} released for refund"
        )
        if report.failed:
            click.echo("Failed booking ids: " + ", ".join(str(b) for b in report.failed))

    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Create demo services and an admin user (idempotent)."""
        seed_demo()
        click.echo("Demo data ready")

    @app.cli.command("block-slot")
    @click.argument("day", type=date.fromisoformat)
    @click.argument("start", type=time.fromisoformat)
    @click.argument("end", type=time.fromisoformat)
    @click.option("--reason", default=None)
    @click.option("--service-id", type=int, default=None, help="Only block this service.")
    def block_slot(day, start, end, reason, service_id):
        """Block DAY from START to END (e.g. 2024-05-01 10:00 12:00)."""
        try:
            req = BlockedSlotRequest.parse({
                "date": day, "start_time": start, "end_time": end,
                "reason": reason, "service_id": service_id, "created_by": "cli",
            })
            store = get_store()
            if service_id is not None and not store.service_exists(service_id):
                raise InvalidReferenceError("service_id")
            block_id = store.insert_blocked_slot(req.model_dump())
        except BookingEngineError as exc:
            raise click.ClickException(exc.message)
        log_event("BLOCKED_SLOT_CREATE", entity="blocked_slot", entity_id=block_id, metadata={"source": "cli"})
        click.echo(f"Blocked slot {block_id} created")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
