from abc import ABC, abstractmethod

from src.service.booking.domain.value_object.notification_payload import NotificationPayload


class INotificationSender(ABC):
    """External channel delivering booking confirmations (email provider, mock outbox...)"""

    @abstractmethod
    async def send(self, *, payload: NotificationPayload) -> None:
        pass
