from typing import Any, Optional

import attrs

from src.service.booking.domain.entity.booking_entity import Booking


@attrs.define(frozen=True)
class NotificationPayload:
    """What the confirmation email needs; handed to the sender as-is."""

    recipient: str
    name: str
    time_slot: str
    edit_url: str
    company: Optional[str] = None

    @classmethod
    def for_new_booking(cls, *, booking: Booking, app_base_url: str) -> 'NotificationPayload':
        return cls(
            recipient=booking.email,
            name=booking.name,
            time_slot=booking.time_slot,
            edit_url=f'{app_base_url.rstrip("/")}/edit-booking/{booking.id}',
            company=booking.company,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            'recipient': self.recipient,
            'name': self.name,
            'timeSlot': self.time_slot,
            'editUrl': self.edit_url,
        }
        if self.company:
            data['company'] = self.company
        return data
