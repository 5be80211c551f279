from flask import Blueprint, request, jsonify

from services.availability import AvailabilityChecker
from services.booking_manager import BookingManager
from services.notifications import ChangeNotifier
from services.schemas import AvailabilityRequest, BookingRequest
from utils.audit import log_event
from utils.components import get_store

booking_bp = Blueprint("booking", __name__)


# ---------- CUSTOMERS: check availability ----------
@booking_bp.post("/availability")
def check_availability():
    data = request.get_json(silent=True)
    req = AvailabilityRequest.parse(data)

    result = AvailabilityChecker(get_store()).check(req.service_id, req.slots)
    return jsonify(result.to_dict()), 200


# ---------- CUSTOMERS: book slots (re-checked right before the write) ----------
@booking_bp.post("/bookings")
def create_booking():
    data = request.get_json(silent=True)
    req = BookingRequest.parse(data)

    store = get_store()
    manager = BookingManager(store, AvailabilityChecker(store), ChangeNotifier())
    created = manager.create_booking(req)

    if created.replayed:
        return jsonify(bookingId=created.booking_id, slotsWritten=created.slots_written, replayed=True), 200

    log_event(
        "BOOKING_CREATE",
        user_id=req.user_id,
        entity="booking",
        entity_id=created.booking_id,
        metadata={"service_id": req.service_id, "slots": [s.to_dict() for s in req.requested_slots()]},
    )
    return jsonify(bookingId=created.booking_id, slotsWritten=created.slots_written), 201
