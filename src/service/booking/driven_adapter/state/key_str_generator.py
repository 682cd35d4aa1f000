"""
Key String Generator

Kvrocks keys for the three booking structures: slot set, slot→id hash, id→record strings.
"""

import os


# Get key prefix from environment for test isolation
_KEY_PREFIX = os.getenv('KVROCKS_KEY_PREFIX', '')

BOOKED_SLOTS_KEY = 'booked-time-slots'
SLOT_TO_ID_MAP_KEY = 'slot-to-id-map'
BOOKING_KEY_PREFIX = 'booking:'


def _make_key(key: str) -> str:
    """Add prefix to key for test isolation in parallel testing"""
    return f'{_KEY_PREFIX}{key}'


def make_booked_slots_key() -> str:
    """Set of currently booked time slots"""
    return _make_key(BOOKED_SLOTS_KEY)


def make_slot_to_id_key() -> str:
    """Hash: time slot -> booking id"""
    return _make_key(SLOT_TO_ID_MAP_KEY)


def make_booking_key(*, booking_id: str) -> str:
    """Serialized booking record"""
    return _make_key(f'{BOOKING_KEY_PREFIX}{booking_id}')
