"""
Wire Modules Configuration

Defines the modules that need dependency injection wiring.
Shared between production and test environments.
"""

from types import ModuleType

from src.service.booking.app.command import (
    create_booking_use_case,
    delete_booking_use_case,
    update_booking_use_case,
)
from src.service.booking.app.query import get_booking_use_case, list_bookings_use_case
from src.service.booking.driving_adapter.http_controller import admin_controller


WIRE_MODULES: list[ModuleType] = [
    create_booking_use_case,
    update_booking_use_case,
    delete_booking_use_case,
    get_booking_use_case,
    list_bookings_use_case,
    admin_controller,
]
