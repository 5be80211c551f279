from dataclasses import dataclass, field
from typing import List, Optional

from services.overlap import overlaps


@dataclass(frozen=True)
class ConflictDescriptor:
    date: object
    start_time: object
    end_time: object
    conflict_start: object
    conflict_end: object
    source: str  # "booking" or "blocked"
    reference_id: Optional[int] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "conflict_start": self.conflict_start.isoformat(),
            "conflict_end": self.conflict_end.isoformat(),
            "source": self.source,
            "reference_id": self.reference_id,
            "reason": self.reason,
        }


@dataclass
class AvailabilityResult:
    conflicts: List[ConflictDescriptor] = field(default_factory=list)

    @property
    def free(self) -> bool:
        return not self.conflicts

    def to_dict(self) -> dict:
        return {"free": self.free, "conflicts": [c.to_dict() for c in self.conflicts]}


class AvailabilityChecker:
    """
    Reports every interval that collides with the requested slots.

    Only confirmed and paid bookings reserve time: a pending booking does not
    block anyone until its payment is captured. Blocks apply when they are
    global or scoped to the requested service. A store failure propagates as
    StoreError and aborts the whole check.

    ``exclude_booking_id`` skips that booking's own slots, for re-checking an
    existing booking before it is confirmed.
    """

    def __init__(self, store):
        self.store = store

    def check(self, service_id, requested_slots, exclude_booking_id=None) -> AvailabilityResult:
        result = AvailabilityResult()
        for slot in requested_slots:
            for booked in self.store.confirmed_slots(service_id, slot.date):
                if exclude_booking_id is not None and booked.booking_id == exclude_booking_id:
                    continue
                if overlaps(slot.start_time, slot.end_time, booked.start_time, booked.end_time):
                    result.conflicts.append(ConflictDescriptor(
                        date=slot.date,
                        start_time=slot.start_time,
                        end_time=slot.end_time,
                        conflict_start=booked.start_time,
                        conflict_end=booked.end_time,
                        source="booking",
                        reference_id=booked.booking_id,
                        reason=f"Overlaps with confirmed booking slot "
                               f"{booked.start_time.isoformat()}-{booked.end_time.isoformat()}",
                    ))

            for blocked in self.store.blocked_slots(slot.date, service_id=service_id):
                if overlaps(slot.start_time, slot.end_time, blocked.start_time, blocked.end_time):
                    result.conflicts.append(ConflictDescriptor(
                        date=slot.date,
                        start_time=slot.start_time,
                        end_time=slot.end_time,
                        conflict_start=blocked.start_time,
                        conflict_end=blocked.end_time,
                        source="blocked",
                        reference_id=blocked.id,
                        reason=blocked.reason or "Blocked by studio",
                    ))
        return result
