"""
Request schemas validated at the HTTP boundary, before any domain logic runs.
"""
import datetime as dt
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from services.errors import ValidationError
from services.overlap import overlaps


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _present(value):
    # null and blank values count as absent, nested slot objects included
    if isinstance(value, dict):
        return {k: _present(v) for k, v in value.items() if v is not None and v != ""}
    if isinstance(value, list):
        return [_present(v) for v in value]
    return value


def _to_validation_error(exc: PydanticValidationError) -> ValidationError:
    missing, invalid = [], {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "body"
        if err["type"] == "missing":
            missing.append(field)
        else:
            invalid[field] = err["msg"]
    message = "Missing required fields" if missing else "Invalid fields"
    return ValidationError(message, missing_fields=missing, invalid_fields=invalid)


class _Schema(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    @classmethod
    def parse(cls, payload):
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            return cls.model_validate(_present(payload))
        except PydanticValidationError as exc:
            raise _to_validation_error(exc) from None


class SlotRequest(_Schema):
    date: dt.date
    start_time: dt.time = Field(validation_alias=AliasChoices("start_time", "start"))
    end_time: dt.time = Field(validation_alias=AliasChoices("end_time", "end"))

    @model_validator(mode="after")
    def _start_before_end(self):
        if self.start_time >= self.end_time:
            raise ValueError("end_time must be after start_time")
        return self

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
        }


class BookingRequest(_Schema):
    user_id: int
    service_id: int
    customer_name: str = Field(max_length=120)
    customer_email: str
    customer_phone: Optional[str] = Field(default=None, max_length=30)
    category_id: Optional[str] = None

    date: dt.date
    start_time: dt.time
    end_time: dt.time
    duration: Optional[int] = Field(default=None, ge=0)
    participants: Optional[int] = Field(default=None, ge=1)
    add_ons: Dict[str, int] = Field(default_factory=dict)
    notes: Optional[str] = None

    total_amount: Decimal = Field(ge=0)
    advance_amount: Decimal = Field(ge=0)

    idempotency_key: Optional[str] = Field(default=None, max_length=120)
    slots: Optional[List[SlotRequest]] = Field(default=None, min_length=1)

    @field_validator("customer_email")
    @classmethod
    def _email(cls, value: str) -> str:
        if not _is_valid_email(value):
            raise ValueError("Invalid email")
        return value.lower()

    @model_validator(mode="after")
    def _check_header(self):
        if self.start_time >= self.end_time:
            raise ValueError("end_time must be after start_time")
        if self.advance_amount > self.total_amount:
            raise ValueError("advance_amount cannot exceed total_amount")
        slots = self.slots or []
        for i, a in enumerate(slots):
            for b in slots[i + 1:]:
                if a.date == b.date and overlaps(a.start_time, a.end_time, b.start_time, b.end_time):
                    raise ValueError("requested slots overlap each other")
        return self

    def requested_slots(self) -> List[SlotRequest]:
        if self.slots:
            return list(self.slots)
        return [SlotRequest(date=self.date, start_time=self.start_time, end_time=self.end_time)]

    def booking_fields(self) -> dict:
        """Header columns; date and times are copied from the first requested slot."""
        fields = self.model_dump(exclude={"slots"})
        first = self.requested_slots()[0]
        fields.update(date=first.date, start_time=first.start_time, end_time=first.end_time)
        return fields


class AvailabilityRequest(_Schema):
    service_id: int
    slots: List[SlotRequest] = Field(min_length=1)


class BlockedSlotRequest(_Schema):
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    reason: Optional[str] = Field(default=None, max_length=255)
    service_id: Optional[int] = None
    created_by: Optional[str] = Field(default=None, max_length=120)

    @model_validator(mode="after")
    def _start_before_end(self):
        if self.start_time >= self.end_time:
            raise ValueError("end_time must be after start_time")
        return self
