"""
Booking creation: validate, re-check availability, then write the header
and its slot rows as one unit.

The store commits each write separately, so a failed slot insert is undone
by deleting the header. If that delete fails too the booking is left
behind and reported as an InconsistencyError for manual repair.
"""
import logging
from dataclasses import dataclass

from services.availability import AvailabilityChecker
from services.errors import ConflictError, InconsistencyError, InvalidReferenceError, StoreError
from services.notifications import ChangeNotifier
from services.schemas import BookingRequest

logger = logging.getLogger(__name__)


@dataclass
class BookingCreated:
    booking_id: int
    slots_written: int
    replayed: bool = False


class BookingManager:
    def __init__(self, store, checker=None, notifier=None):
        self.store = store
        self.checker = checker or AvailabilityChecker(store)
        self.notifier = notifier or ChangeNotifier()

    def create_booking(self, request) -> BookingCreated:
        if not isinstance(request, BookingRequest):
            request = BookingRequest.parse(request)

        if not self.store.user_exists(request.user_id):
            raise InvalidReferenceError("user_id")
        if not self.store.service_exists(request.service_id):
            raise InvalidReferenceError("service_id")

        if request.idempotency_key:
            replay = self._replay(request.idempotency_key)
            if replay:
                return replay

        slots = request.requested_slots()
        availability = self.checker.check(request.service_id, slots)
        if not availability.free:
            raise ConflictError(availability.conflicts)

        try:
            booking_id = self.store.insert_booking(request.booking_fields())
        except StoreError:
            # lost a race on the same idempotency key
            if request.idempotency_key:
                replay = self._replay(request.idempotency_key)
                if replay:
                    return replay
            raise

        try:
            written = self.store.insert_slots(booking_id, slots)
        except StoreError:
            self._compensate(booking_id)
            raise

        logger.info("Booking %s created with %d slot(s)", booking_id, written)
        self.notifier.publish("bookings", "INSERT", booking_id)
        return BookingCreated(booking_id=booking_id, slots_written=written)

    def _replay(self, key):
        existing = self.store.find_booking_by_idempotency_key(key)
        if existing is None:
            return None
        logger.info("Idempotent replay of booking %s", existing.id)
        return BookingCreated(
            booking_id=existing.id,
            slots_written=self.store.count_slots(existing.id),
            replayed=True,
        )

    def _compensate(self, booking_id):
        try:
            self.store.delete_booking(booking_id)
        except StoreError as exc:
            logger.error(
                "Compensating delete failed: booking %s has no slots and must be removed by hand",
                booking_id,
            )
            raise InconsistencyError("compensate_booking", booking_id=booking_id) from exc
        logger.warning("Rolled back booking %s after slot insert failure", booking_id)
