class AdminReporter:
    """Read-only rollups for the admin dashboard."""

    def __init__(self, store):
        self.store = store

    def summary(self) -> dict:
        by_status = self.store.booking_counts_by_status()
        return {
            "totalBookings": sum(by_status.values()),
            "pendingBookings": by_status.get("pending", 0),
            "confirmedBookings": by_status.get("confirmed", 0),
            "cancelledBookings": by_status.get("cancelled", 0),
            "totalRevenue": float(self.store.paid_revenue() or 0),
            "totalUsers": self.store.count_users(),
            "totalServices": self.store.count_services(),
            "blockedSlots": self.store.count_blocked_slots(),
        }
