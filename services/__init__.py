from .availability import AvailabilityChecker, AvailabilityResult, ConflictDescriptor
from .booking_manager import BookingCreated, BookingManager
from .notifications import ChangeNotifier, row_changed
from .overlap import overlaps
from .payment_confirmation import ConfirmationResult, PaymentConfirmationProcessor
from .reconciliation import PaymentReconciler, ReconcileReport
from .reporting import AdminReporter
from .store import SqlStore
from .webhooks import WebhookOutcome, WebhookProcessor
