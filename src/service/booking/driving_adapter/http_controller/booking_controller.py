from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace

from src.platform.logging.loguru_io import Logger
from src.service.booking.app.command.create_booking_use_case import CreateBookingUseCase
from src.service.booking.app.command.delete_booking_use_case import DeleteBookingUseCase
from src.service.booking.app.command.update_booking_use_case import UpdateBookingUseCase
from src.service.booking.app.query.get_booking_use_case import GetBookingUseCase
from src.service.booking.app.query.list_bookings_use_case import ListBookingsUseCase
from src.service.booking.driving_adapter.http_controller.admin_controller import require_admin
from src.service.booking.driving_adapter.http_controller.schema.booking_schema import (
    BookingCreateRequest,
    BookingResponse,
    BookingUpdateRequest,
    MessageResponse,
)


router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.get('', response_model=List[BookingResponse])
@Logger.io
async def list_bookings(
    exclude_time_slot: Optional[str] = Query(None, alias='excludeTimeSlot'),
    use_case: ListBookingsUseCase = Depends(ListBookingsUseCase.depends),
) -> List[BookingResponse]:
    bookings = await use_case.list_bookings(exclude_slot=exclude_time_slot)
    return [BookingResponse.from_entity(b) for b in bookings]


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
@Logger.io
async def create_booking(
    request: BookingCreateRequest,
    use_case: CreateBookingUseCase = Depends(CreateBookingUseCase.depends),
) -> BookingResponse:
    with tracer.start_as_current_span('controller.create_booking') as span:
        span.set_attribute('booking.time_slot', request.time_slot)

        booking = await use_case.create_booking(
            name=request.name,
            email=request.email,
            company=request.company,
            time_slot=request.time_slot,
        )

        span.set_attribute('booking.id', booking.id)
        return BookingResponse.from_entity(booking)


@router.get('/{booking_id}', response_model=BookingResponse)
@Logger.io
async def get_booking(
    booking_id: str,
    use_case: GetBookingUseCase = Depends(GetBookingUseCase.depends),
) -> BookingResponse:
    return BookingResponse.from_entity(await use_case.get_booking(booking_id=booking_id))


@router.put('/{booking_id}', response_model=BookingResponse)
@Logger.io
async def update_booking(
    booking_id: str,
    request: BookingUpdateRequest,
    use_case: UpdateBookingUseCase = Depends(UpdateBookingUseCase.depends),
) -> BookingResponse:
    booking = await use_case.update_booking(
        booking_id=booking_id,
        name=request.name,
        email=request.email,
        company=request.company,
        time_slot=request.time_slot,
    )
    return BookingResponse.from_entity(booking)


@router.delete(
    '/{booking_id}', response_model=MessageResponse, dependencies=[Depends(require_admin)]
)
@Logger.io
async def delete_booking(
    booking_id: str,
    use_case: DeleteBookingUseCase = Depends(DeleteBookingUseCase.depends),
) -> MessageResponse:
    await use_case.delete_booking(booking_id=booking_id)
    return MessageResponse(message='Booking deleted successfully')
