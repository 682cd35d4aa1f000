from typing import Any, Optional

import attrs
import orjson
import uuid_utils

from src.platform.exception.exceptions import BookingValidationError


_REQUIRED_FIELDS = ('name', 'email', 'time_slot')


def _require_non_empty(field: str, value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise BookingValidationError(f'{field} is required', field=field)
    return value.strip()


@attrs.define(frozen=True)
class BookingCandidate:
    """Fields a visitor submits to reserve a slot; the id is assigned on creation."""

    name: str
    email: str
    time_slot: str
    company: Optional[str] = None

    def validate(self) -> 'BookingCandidate':
        values = {
            field: _require_non_empty(field, value)
            for field, value in zip(
                _REQUIRED_FIELDS, (self.name, self.email, self.time_slot), strict=True
            )
        }
        return BookingCandidate(company=(self.company or '').strip() or None, **values)


@attrs.define(frozen=True)
class BookingPatch:
    """Partial update; None means "leave unchanged". company='' clears it."""

    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    time_slot: Optional[str] = None

    def validate(self) -> 'BookingPatch':
        return BookingPatch(
            name=None if self.name is None else _require_non_empty('name', self.name),
            email=None if self.email is None else _require_non_empty('email', self.email),
            company=None if self.company is None else self.company.strip(),
            time_slot=None
            if self.time_slot is None
            else _require_non_empty('time_slot', self.time_slot),
        )


@attrs.define(frozen=True)
class Booking:
    id: str
    name: str
    email: str
    time_slot: str
    company: Optional[str] = None

    @classmethod
    def create(cls, candidate: BookingCandidate) -> 'Booking':
        valid = candidate.validate()
        return cls(
            id=str(uuid_utils.uuid7()),
            name=valid.name,
            email=valid.email,
            time_slot=valid.time_slot,
            company=valid.company,
        )

    def apply(self, patch: BookingPatch) -> 'Booking':
        """Merge a validated patch; the id never changes."""
        changes: dict[str, Any] = {
            k: v
            for k, v in (
                ('name', patch.name),
                ('email', patch.email),
                ('time_slot', patch.time_slot),
            )
            if v is not None
        }
        if patch.company is not None:
            changes['company'] = patch.company or None
        return attrs.evolve(self, **changes)

    # ========== Store serialization (camelCase, same layout the web client uses) ==========

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'timeSlot': self.time_slot,
        }
        if self.company:
            data['company'] = self.company
        return data

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str | bytes) -> 'Booking':
        """Raises ValueError on anything that is not a complete booking record."""
        try:
            data = orjson.loads(raw)
            return cls(
                id=data['id'],
                name=data['name'],
                email=data['email'],
                time_slot=data['timeSlot'],
                company=data.get('company') or None,
            )
        except (orjson.JSONDecodeError, KeyError, TypeError) as e:
            raise ValueError(f'Malformed booking record: {e}') from e
