from datetime import datetime
from models.db import db

class WebhookEvent(db.Model):
    __tablename__ = "webhook_events"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.String(255), nullable=False, unique=True)  # gateway event id, insert-once
    event_type = db.Column(db.String(80), nullable=False)

    received_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
