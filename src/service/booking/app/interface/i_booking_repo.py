from abc import ABC, abstractmethod
from typing import List, Optional

from src.service.booking.domain.entity.booking_entity import (
    Booking,
    BookingCandidate,
    BookingPatch,
)


class IBookingRepo(ABC):
    """
    Booking repository over the slot set, the slot→id index and the record store.

    Every mutation keeps the three structures consistent in one atomic step.
    """

    @abstractmethod
    async def list_all(self, *, exclude_slot: Optional[str] = None) -> List[Booking]:
        """Bookings currently holding a slot; inconsistent entries are skipped."""
        pass

    @abstractmethod
    async def get_by_id(self, *, booking_id: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def create(self, *, candidate: BookingCandidate) -> Booking:
        """
        Raises:
            SlotConflictError: slot already booked (nothing is written)
        """
        pass

    @abstractmethod
    async def update(self, *, booking_id: str, patch: BookingPatch) -> Optional[Booking]:
        """
        Returns None when the booking does not exist.

        Raises:
            SlotConflictError: new slot already booked (nothing is written)
            BookingChangedError: the booking kept changing between read and write
        """
        pass

    @abstractmethod
    async def delete_by_id(self, *, booking_id: str) -> bool:
        """
        Returns False when the booking does not exist.

        Raises:
            BookingChangedError: the booking kept changing between read and write
        """
        pass
