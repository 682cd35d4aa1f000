from prometheus_client import Counter, Histogram


class BookingMetrics:
    """
    Slot Booking Core Metrics Collector

    Tracks repository outcomes, slot contention, index health and notification delivery
    """

    def __init__(self):
        # ========== Booking Operation Metrics ==========
        self.booking_operations = Counter(
            'booking_operations_total',
            'Total booking repository operations',
            ['operation', 'result'],  # result: success/conflict/not_found/changed/error
        )

        self.booking_operation_duration = Histogram(
            'booking_operation_duration_seconds',
            'Booking repository operation duration',
            ['operation'],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
        )

        self.slot_conflicts = Counter(
            'booking_slot_conflicts_total',
            'Requests rejected because the time slot is already booked',
            ['operation'],  # create/update
        )

        self.stale_writes = Counter(
            'booking_stale_writes_total',
            'Writes rejected because the record changed after it was read',
            ['operation'],  # update/delete
        )

        # ========== Index Health ==========
        self.index_inconsistencies = Counter(
            'booking_index_inconsistencies_total',
            'Slot set / index / record mismatches skipped while listing',
            ['kind'],  # missing_id/missing_record/malformed_record/slot_mismatch
        )

        # ========== Notification Metrics ==========
        self.notifications_sent = Counter(
            'booking_notifications_sent_total', 'Booking notifications delivered'
        )

        self.notification_failures = Counter(
            'booking_notification_failures_total', 'Booking notifications that failed to send'
        )

    # ========== Helper Methods ==========
    def record_operation(self, *, operation: str, result: str, duration: float):
        self.booking_operations.labels(operation=operation, result=result).inc()
        self.booking_operation_duration.labels(operation=operation).observe(duration)

    def record_slot_conflict(self, *, operation: str):
        self.slot_conflicts.labels(operation=operation).inc()

    def record_stale_write(self, *, operation: str):
        self.stale_writes.labels(operation=operation).inc()

    def record_index_inconsistency(self, *, kind: str):
        self.index_inconsistencies.labels(kind=kind).inc()


# Global metrics instance
metrics = BookingMetrics()
