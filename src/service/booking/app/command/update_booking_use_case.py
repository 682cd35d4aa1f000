from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.exception.exceptions import BookingNotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.booking.app.interface.i_booking_repo import IBookingRepo
from src.service.booking.domain.entity.booking_entity import Booking, BookingPatch


class UpdateBookingUseCase:
    def __init__(self, *, booking_repo: IBookingRepo) -> None:
        self.booking_repo = booking_repo

    @classmethod
    @inject
    def depends(
        cls, booking_repo: IBookingRepo = Depends(Provide[Container.booking_repo])
    ) -> Self:
        return cls(booking_repo=booking_repo)

    @Logger.io
    async def update_booking(
        self,
        *,
        booking_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        company: Optional[str] = None,
        time_slot: Optional[str] = None,
    ) -> Booking:
        """
        Partial update; omitted fields keep their value, company='' clears it.

        Raises:
            BookingValidationError: a provided name/email/time_slot is blank
            BookingNotFoundError: no booking with this id
            SlotConflictError: the new slot is held by another booking
        """
        patch = BookingPatch(
            name=name, email=email, company=company, time_slot=time_slot
        ).validate()

        booking = await self.booking_repo.update(booking_id=booking_id, patch=patch)
        if booking is None:
            raise BookingNotFoundError(booking_id=booking_id)
        return booking
