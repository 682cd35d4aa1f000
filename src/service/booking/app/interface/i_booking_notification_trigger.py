from abc import ABC, abstractmethod

from src.service.booking.domain.value_object.notification_payload import NotificationPayload


class IBookingNotificationTrigger(ABC):
    @abstractmethod
    def fire(self, *, payload: NotificationPayload) -> None:
        """
        Schedule delivery and return immediately.

        Delivery outcome is never reported back to the caller.
        """
        pass
