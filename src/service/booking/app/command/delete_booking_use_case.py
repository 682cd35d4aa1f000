from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.exception.exceptions import BookingNotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.booking.app.interface.i_booking_repo import IBookingRepo


class DeleteBookingUseCase:
    """Admin-only; authorization is enforced by the controller before this runs."""

    def __init__(self, *, booking_repo: IBookingRepo) -> None:
        self.booking_repo = booking_repo

    @classmethod
    @inject
    def depends(
        cls, booking_repo: IBookingRepo = Depends(Provide[Container.booking_repo])
    ) -> Self:
        return cls(booking_repo=booking_repo)

    @Logger.io
    async def delete_booking(self, *, booking_id: str) -> None:
        if not await self.booking_repo.delete_by_id(booking_id=booking_id):
            raise BookingNotFoundError(booking_id=booking_id)
        Logger.base.info(f'🗑️ [DELETE_BOOKING] Slot released by {booking_id}')
