from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.core_setting import Settings
from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.service.booking.app.interface.i_booking_notification_trigger import (
    IBookingNotificationTrigger,
)
from src.service.booking.app.interface.i_booking_repo import IBookingRepo
from src.service.booking.domain.entity.booking_entity import Booking, BookingCandidate
from src.service.booking.domain.value_object.notification_payload import NotificationPayload


class CreateBookingUseCase:
    """
    Create booking use case

    Flow:
    1. Validate required fields (no store access on failure)
    2. Reserve the slot and persist the record (repository, atomic)
    3. Fire the confirmation email without waiting for it
    """

    def __init__(
        self,
        *,
        booking_repo: IBookingRepo,
        notification_trigger: IBookingNotificationTrigger,
        app_base_url: str,
    ) -> None:
        self.booking_repo = booking_repo
        self.notification_trigger = notification_trigger
        self.app_base_url = app_base_url
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        booking_repo: IBookingRepo = Depends(Provide[Container.booking_repo]),
        notification_trigger: IBookingNotificationTrigger = Depends(
            Provide[Container.notification_trigger]
        ),
        config: Settings = Depends(Provide[Container.config_service]),
    ) -> Self:
        return cls(
            booking_repo=booking_repo,
            notification_trigger=notification_trigger,
            app_base_url=config.APP_BASE_URL,
        )

    @Logger.io
    async def create_booking(
        self,
        *,
        name: str,
        email: str,
        time_slot: str,
        company: Optional[str] = None,
    ) -> Booking:
        """
        Raises:
            BookingValidationError: name, email or time_slot missing/blank
            SlotConflictError: slot already booked
        """
        candidate = BookingCandidate(
            name=name, email=email, time_slot=time_slot, company=company
        ).validate()

        with self.tracer.start_as_current_span(
            'use_case.create_booking', attributes={'booking.time_slot': candidate.time_slot}
        ):
            booking = await self.booking_repo.create(candidate=candidate)
            Logger.base.info(f'✅ [CREATE_BOOKING] {booking.id} holds {booking.time_slot}')

            self.notification_trigger.fire(
                payload=NotificationPayload.for_new_booking(
                    booking=booking, app_base_url=self.app_base_url
                )
            )
            return booking
