from .db import db
from .user import User
from .service import Service
from .booking import Booking
from .slot import Slot
from .blocked_slot import BlockedSlot
from .payment import Payment
from .webhook_event import WebhookEvent
from .audit_log import AuditLog
