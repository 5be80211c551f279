from .health import health_bp
from .booking import booking_bp
from .payments import payments_bp
from .webhooks import webhook_bp
from .admin import admin_bp
