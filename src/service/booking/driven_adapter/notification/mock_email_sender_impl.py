"""Mock email sender for local development and tests."""

from collections import deque
from datetime import datetime

from src.platform.logging.loguru_io import Logger
from src.service.booking.app.interface.i_notification_sender import INotificationSender
from src.service.booking.domain.value_object.notification_payload import NotificationPayload


class MockEmailSenderImpl(INotificationSender):
    """Logs the confirmation instead of sending it and keeps the most recent ones."""

    def __init__(
        self, *, subject: str = 'Your booking is confirmed', outbox_size: int = 100
    ) -> None:
        self.subject = subject
        self.sent_emails: deque[dict] = deque(maxlen=outbox_size)

    @Logger.io
    async def send(self, *, payload: NotificationPayload) -> None:
        email_data = {
            'to': payload.recipient,
            'subject': self.subject,
            'payload': payload.to_dict(),
            'sent_at': datetime.now(),
        }
        self.sent_emails.append(email_data)

        Logger.base.info(
            f'📧 [MOCK-EMAIL] To: {payload.recipient} | Slot: {payload.time_slot} '
            f'| Edit: {payload.edit_url}'
        )
