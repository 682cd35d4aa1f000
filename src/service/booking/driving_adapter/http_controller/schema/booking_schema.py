from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from src.service.booking.domain.entity.booking_entity import Booking


class BookingCreateRequest(BaseModel):
    # Blank/missing fields are rejected by the use case with a field-level 400
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            'example': {
                'name': 'Ada Lovelace',
                'email': 'ada@example.com',
                'company': 'Analytical Engines',
                'timeSlot': '2024-06-25 09:00-10:30',
            }
        },
    )

    name: str = ''
    email: str = ''
    company: Optional[str] = None
    time_slot: str = Field(default='', alias='timeSlot')


class BookingUpdateRequest(BaseModel):
    """Omitted fields keep their value; "company": "" clears it."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={'example': {'timeSlot': '2024-06-26 14:00-15:30'}},
    )

    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    time_slot: Optional[str] = Field(default=None, alias='timeSlot')


class BookingResponse(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            'example': {
                'id': '01936d8f-5e73-7c4e-a9c5-123456789abc',  # UUID7
                'name': 'Ada Lovelace',
                'email': 'ada@example.com',
                'company': 'Analytical Engines',
                'timeSlot': '2024-06-25 09:00-10:30',
            }
        },
    )

    id: str
    name: str
    email: str
    company: Optional[str] = None
    time_slot: str = Field(alias='timeSlot')

    @classmethod
    def from_entity(cls, booking: Booking) -> 'BookingResponse':
        return cls(
            id=booking.id,
            name=booking.name,
            email=booking.email,
            company=booking.company,
            time_slot=booking.time_slot,
        )


class MessageResponse(BaseModel):
    message: str


class AdminLoginRequest(BaseModel):
    password: SecretStr

    model_config = ConfigDict(json_schema_extra={'example': {'password': 'admin'}})
