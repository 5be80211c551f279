import logging

from blinker import Namespace

logger = logging.getLogger(__name__)

_signals = Namespace()

# sender is the table name, so subscribers can connect per table:
#   row_changed.connect(handler, sender="bookings")
row_changed = _signals.signal("row-changed")


class ChangeNotifier:
    """At-most-once change events. A failing subscriber never fails the write."""

    def __init__(self, signal=row_changed):
        self.signal = signal

    def publish(self, table: str, operation: str, record_id=None) -> None:
        try:
            self.signal.send(table, operation=operation, record_id=record_id)
        except Exception:
            logger.exception("Change subscriber failed for %s %s %s", table, operation, record_id)
