from typing import Any, Optional


class CustomBaseError(Exception):
    """Base class for all custom exceptions - controls logging behavior in @Logger.io"""

    def __init__(
        self, message: str, status_code: int = 500, context: Optional[dict[str, Any]] = None
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.context = context or {}
        super().__init__(message)


class DomainError(CustomBaseError):
    def __init__(
        self, message: str, status_code: int = 400, context: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, status_code, context)


class NotFoundError(CustomBaseError):
    def __init__(self, message: str, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, 404, context)


class ConflictError(CustomBaseError):
    def __init__(self, message: str, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, 409, context)


class AuthenticationError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 401)


class UnauthorizedError(CustomBaseError):
    def __init__(self, message: str = 'Unauthorized') -> None:
        super().__init__(message, 401)


class StoreUnavailableError(CustomBaseError):
    """Transport or transaction failure against the key-value store. Never retried here."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, 500, context)


# ============================ Booking errors ============================


class BookingValidationError(DomainError):
    def __init__(self, message: str, *, field: str) -> None:
        super().__init__(message, 400, {'field': field})


class SlotConflictError(ConflictError):
    def __init__(self, *, time_slot: str, booking_id: Optional[str] = None) -> None:
        context: dict[str, Any] = {'timeSlot': time_slot}
        if booking_id:
            context['bookingId'] = booking_id
        super().__init__(f'Time slot {time_slot} is already booked', context)
        self.time_slot = time_slot
        self.booking_id = booking_id


class BookingNotFoundError(NotFoundError):
    def __init__(self, *, booking_id: str) -> None:
        super().__init__(f'Booking {booking_id} not found', {'bookingId': booking_id})
        self.booking_id = booking_id


class BookingChangedError(ConflictError):
    """The booking kept changing under a read-then-write; the caller may retry."""

    def __init__(self, *, booking_id: str) -> None:
        super().__init__(
            f'Booking {booking_id} was modified concurrently', {'bookingId': booking_id}
        )
        self.booking_id = booking_id
