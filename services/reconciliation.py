import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from services.availability import AvailabilityChecker
from services.errors import StoreError
from services.notifications import ChangeNotifier
from services.payment_confirmation import settle_booking

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    repaired: List[int] = field(default_factory=list)
    released: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


class PaymentReconciler:
    """
    Finishes capture transitions that stopped half way: the payment is
    captured but its booking is still pending. Each booking is repaired on
    its own; one failure does not stop the pass. A booking whose slots were
    taken in the meantime is released for refund rather than confirmed.
    """

    def __init__(self, store, notifier=None, checker=None):
        self.store = store
        self.notifier = notifier or ChangeNotifier()
        self.checker = checker or AvailabilityChecker(store)

    def run(self, limit: int = 100) -> ReconcileReport:
        report = ReconcileReport()
        stuck = self.store.captured_unconfirmed_payments(limit)
        logger.info("Found %d captured payment(s) with unconfirmed bookings", len(stuck))

        for payment_id, booking_id in stuck:
            try:
                conflicts = settle_booking(self.store, self.checker, booking_id, datetime.utcnow())
            except StoreError:
                logger.error("Could not confirm booking %s for payment %s", booking_id, payment_id)
                report.failed.append(booking_id)
                continue
            self.notifier.publish("bookings", "UPDATE", booking_id)
            if conflicts:
                logger.warning("Released booking %s; captured payment %s needs a refund", booking_id, payment_id)
                report.released.append(booking_id)
                continue
            logger.info("Confirmed booking %s for captured payment %s", booking_id, payment_id)
            report.repaired.append(booking_id)
        return report
