from datetime import datetime
from models.db import db

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(120), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(30), nullable=True)
    category_id = db.Column(db.String(64), nullable=True)

    # header copy of the first requested slot; booking_slots is authoritative
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    duration = db.Column(db.Integer, nullable=True)
    participants = db.Column(db.Integer, nullable=True)
    add_ons = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    advance_amount = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(db.String(20), nullable=False, default="pending")
    # status values: pending, confirmed, cancelled
    payment_status = db.Column(db.String(20), nullable=False, default="pending")
    # payment_status values: pending, paid, failed

    idempotency_key = db.Column(db.String(120), nullable=True, unique=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    slots = db.relationship(
        "Slot",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Slot.id",
    )
