"""
Error taxonomy for the booking engine.

Every error carries a stable ``kind`` and the HTTP status it maps to, so the
app can render all of them through one error handler.
"""


class BookingEngineError(Exception):
    kind = "internal_error"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, **self.details}


class ValidationError(BookingEngineError):
    kind = "validation_error"
    status_code = 400
    default_message = "Missing or invalid fields"

    def __init__(self, message=None, missing_fields=None, invalid_fields=None):
        details = {}
        if missing_fields:
            details["missing_fields"] = list(missing_fields)
        if invalid_fields:
            details["invalid_fields"] = dict(invalid_fields)
        super().__init__(message, **details)
        self.missing_fields = list(missing_fields or [])
        self.invalid_fields = dict(invalid_fields or {})


class InvalidReferenceError(BookingEngineError):
    kind = "invalid_reference"
    status_code = 400

    def __init__(self, field: str):
        super().__init__(f"Invalid {field}", field=field)
        self.field = field


class ConflictError(BookingEngineError):
    kind = "slot_conflict"
    status_code = 409
    default_message = "Slot conflict"

    def __init__(self, conflicts):
        self.conflicts = list(conflicts)
        super().__init__(conflicts=[c.to_dict() for c in self.conflicts])


class SlotTakenError(ConflictError):
    """A paid booking lost its slots to another confirmed booking or a block."""

    kind = "slot_taken"
    default_message = "Slot was taken before payment completed; payment flagged for refund"

    def __init__(self, conflicts, booking_id=None):
        super().__init__(conflicts)
        self.booking_id = booking_id
        self.details["booking_id"] = booking_id


class SecurityError(BookingEngineError):
    kind = "invalid_signature"
    status_code = 400
    default_message = "Invalid signature"


class NotFoundError(BookingEngineError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class StoreError(BookingEngineError):
    """Underlying data-service failure. Reads are safe to retry, writes are not."""

    kind = "store_error"
    status_code = 500
    default_message = "Store operation failed"

    def __init__(self, message=None, retryable=False):
        super().__init__(message)
        self.retryable = retryable


class ConfigurationError(BookingEngineError):
    kind = "configuration_error"
    status_code = 500
    default_message = "Server configuration error"


class InconsistencyError(BookingEngineError):
    """
    A multi-step write stopped half way. ``step`` names the step that failed
    and ``context`` holds the ids needed for manual repair. The context is
    logged, never returned to the caller.
    """

    kind = "inconsistency"
    status_code = 500
    default_message = "Partial write requires reconciliation"

    def __init__(self, step: str, **context):
        super().__init__()
        self.step = step
        self.context = context
