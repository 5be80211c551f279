from datetime import date

from flask import Blueprint, jsonify, request

from services.errors import InvalidReferenceError, NotFoundError, ValidationError
from services.reporting import AdminReporter
from services.schemas import BlockedSlotRequest
from utils.audit import log_event
from utils.components import get_store

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _block_to_dict(b):
    return {
        "id": b.id,
        "date": b.date.isoformat(),
        "start_time": b.start_time.isoformat(),
        "end_time": b.end_time.isoformat(),
        "reason": b.reason,
        "service_id": b.service_id,
        "created_by": b.created_by,
        "created_at": b.created_at.isoformat(),
    }


@admin_bp.get("/summary")
def summary():
    return jsonify(AdminReporter(get_store()).summary()), 200


# ---------- STAFF: blackout windows ----------
@admin_bp.get("/blocked-slots")
def list_blocked_slots():
    date_str = request.args.get("date")
    if not date_str:
        raise ValidationError("date query parameter is required", missing_fields=["date"])
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD", invalid_fields={"date": date_str}) from None

    service_id = request.args.get("service_id", type=int)
    rows = get_store().blocked_slots(day, service_id=service_id)
    return jsonify([_block_to_dict(b) for b in rows]), 200


@admin_bp.post("/blocked-slots")
def create_blocked_slot():
    req = BlockedSlotRequest.parse(request.get_json(silent=True))

    store = get_store()
    if req.service_id is not None and not store.service_exists(req.service_id):
        raise InvalidReferenceError("service_id")

    block_id = store.insert_blocked_slot(req.model_dump())
    log_event(
        "BLOCKED_SLOT_CREATE",
        entity="blocked_slot",
        entity_id=block_id,
        metadata={"date": req.date.isoformat(), "reason": req.reason},
    )
    return jsonify(id=block_id), 201


@admin_bp.delete("/blocked-slots/<int:block_id>")
def delete_blocked_slot(block_id: int):
    if not get_store().delete_blocked_slot(block_id):
        raise NotFoundError("Blocked slot not found")

    log_event("BLOCKED_SLOT_DELETE", entity="blocked_slot", entity_id=block_id)
    return jsonify(message="Blocked slot removed"), 200
