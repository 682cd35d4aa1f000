"""
Resend Email Sender Implementation

Delivers booking confirmations through the Resend HTTP API:
    POST {EMAIL_API_URL}
    Authorization: Bearer {RESEND_API_KEY}
    {"from", "to": [recipient], "subject", "text"}
"""

import httpx

from src.platform.logging.loguru_io import Logger
from src.service.booking.app.interface.i_notification_sender import INotificationSender
from src.service.booking.domain.value_object.notification_payload import NotificationPayload


class ResendEmailSenderImpl(INotificationSender):
    def __init__(
        self,
        *,
        api_key: str,
        api_url: str,
        sender: str,
        subject: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.sender = sender
        self.subject = subject
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def build_text(payload: NotificationPayload) -> str:
        lines = [
            f'Hi {payload.name},',
            '',
            f'Your booking for {payload.time_slot} is confirmed.',
        ]
        if payload.company:
            lines.append(f'Company: {payload.company}')
        lines += ['', f'To change or review your booking, visit: {payload.edit_url}']
        return '\n'.join(lines)

    @Logger.io
    async def send(self, *, payload: NotificationPayload) -> None:
        body = {
            'from': self.sender,
            'to': [payload.recipient],
            'subject': self.subject,
            'text': self.build_text(payload),
        }
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(
                self.api_url,
                json=body,
                headers={'Authorization': f'Bearer {self.api_key}'},
            )
            # Non-2xx raises httpx.HTTPStatusError; the trigger logs and drops it
            response.raise_for_status()

        Logger.base.info(f'📧 [RESEND] Confirmation sent to {payload.recipient}')
