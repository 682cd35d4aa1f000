"""
Booking Notification Trigger Implementation

Fire-and-forget dispatch of booking confirmations. The request that created the
booking never waits for delivery and never sees its outcome.
"""

import asyncio
from typing import Optional

from anyio.abc import TaskGroup

from src.platform.logging.loguru_io import Logger
from src.platform.metrics.booking_metrics import metrics
from src.service.booking.app.interface.i_booking_notification_trigger import (
    IBookingNotificationTrigger,
)
from src.service.booking.app.interface.i_notification_sender import INotificationSender
from src.service.booking.domain.value_object.notification_payload import NotificationPayload


class BookingNotificationTriggerImpl(IBookingNotificationTrigger):
    def __init__(
        self, *, sender: INotificationSender, task_group: Optional[TaskGroup] = None
    ) -> None:
        self.sender = sender
        self.task_group = task_group
        self._pending: set[asyncio.Task] = set()

    def fire(self, *, payload: NotificationPayload) -> None:
        if self.task_group is not None:
            self.task_group.start_soon(self._dispatch, payload)
            return

        # No app task group (scripts, tests): keep a reference until the task is done
        task = asyncio.create_task(self._dispatch(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _dispatch(self, payload: NotificationPayload) -> None:
        try:
            await self.sender.send(payload=payload)
            metrics.notifications_sent.inc()
        except Exception as e:
            metrics.notification_failures.inc()
            Logger.base.warning(
                f'⚠️ [NOTIFY] Confirmation to {payload.recipient} '
                f'for slot {payload.time_slot} failed: {type(e).__name__}: {e}'
            )

    async def drain(self) -> None:
        """Wait for fallback tasks still in flight (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
