"""
Booking Repository Implementation

Kvrocks-based storage of bookings across three denormalized structures.

Storage Format:
    booked-time-slots       Set     time slots currently booked
    slot-to-id-map          Hash    time slot -> booking id
    booking:{booking_id}    String  JSON booking record (camelCase keys)

Invariants:
    - a slot is in the set iff the hash has a field for it
    - the hash value for a slot is the id of the booking whose record has that timeSlot
    - every mutation touches the three structures in one MULTI/EXEC or one Lua script

Reservation modes (SLOT_RESERVATION_MODE):
    atomic          reserve_slot.lua checks membership and writes in one step.
                    update_booking.lua / release_booking.lua only write if the record is
                    still the one that was read (compare-and-swap on the raw JSON); a
                    stale read is retried from a fresh read.
    check_then_act  SISMEMBER round-trip, then MULTI/EXEC; two requests racing for the same
                    free slot can both pass the check and the later EXEC wins the index entries.
                    Update and delete act on whatever they read, stale or not.
"""

from collections.abc import Iterator
from contextlib import contextmanager
import time
from typing import List, Literal, Optional

from opentelemetry import trace

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import (
    BookingChangedError,
    SlotConflictError,
    StoreUnavailableError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.booking_metrics import metrics
from src.platform.state.kv_store import KvStore
from src.service.booking.app.interface.i_booking_repo import IBookingRepo
from src.service.booking.domain.entity.booking_entity import (
    Booking,
    BookingCandidate,
    BookingPatch,
)
from src.service.booking.driven_adapter.state.key_str_generator import (
    make_booked_slots_key,
    make_booking_key,
    make_slot_to_id_key,
)


ReservationMode = Literal['atomic', 'check_then_act']

# Lua script results
_WRITTEN = 1
_SLOT_TAKEN = 0
_RECORD_GONE = -1
_RECORD_CHANGED = -2

MAX_WRITE_ATTEMPTS = 3


class BookingRepoImpl(IBookingRepo):
    def __init__(
        self, *, kv_store: KvStore, reservation_mode: Optional[ReservationMode] = None
    ) -> None:
        self.kv = kv_store
        self.reservation_mode: ReservationMode = (
            reservation_mode or settings.SLOT_RESERVATION_MODE
        )
        self.tracer = trace.get_tracer(__name__)

    @property
    def is_atomic(self) -> bool:
        return self.reservation_mode == 'atomic'

    def _record(self, operation: str, result: str, started: float) -> None:
        metrics.record_operation(
            operation=operation, result=result, duration=time.perf_counter() - started
        )

    @contextmanager
    def _recording_errors(self, operation: str, started: float) -> Iterator[None]:
        try:
            yield
        except StoreUnavailableError:
            self._record(operation, 'error', started)
            raise

    def _conflict(self, operation: str, *, time_slot: str, booking_id: Optional[str] = None):
        metrics.record_slot_conflict(operation=operation)
        Logger.base.warning(
            f'⚠️ [BOOKING-REPO] {operation}: slot {time_slot} already booked'
            + (f' (booking {booking_id})' if booking_id else '')
        )
        return SlotConflictError(time_slot=time_slot, booking_id=booking_id)

    def _changed(self, operation: str, *, booking_id: str, attempt: int) -> None:
        metrics.record_stale_write(operation=operation)
        Logger.base.warning(
            f'⚠️ [BOOKING-REPO] {operation}: booking {booking_id} changed since it was read '
            f'(attempt {attempt}/{MAX_WRITE_ATTEMPTS})'
        )

    def _skip(self, kind: str, detail: str) -> None:
        metrics.record_index_inconsistency(kind=kind)
        Logger.base.warning(f'⚠️ [BOOKING-REPO] Skipping inconsistent entry ({kind}): {detail}')

    # ========== Reads ==========

    @Logger.io
    async def list_all(self, *, exclude_slot: Optional[str] = None) -> List[Booking]:
        """
        Resolve every booked slot to its record: SMEMBERS -> HMGET -> MGET.

        Entries that do not resolve cleanly (no id for a slot, no record for an id,
        undecodable record, record pointing at another slot) are skipped, not raised.
        """
        started = time.perf_counter()
        with self.tracer.start_as_current_span(
            'repo.booking.list_all',
            attributes={'booking.exclude_slot': exclude_slot or ''},
        ) as span, self._recording_errors('list', started):
            slots = await self.kv.smembers(make_booked_slots_key())
            if exclude_slot:
                slots = slots - {exclude_slot}
            if not slots:
                self._record('list', 'success', started)
                return []

            ordered_slots = sorted(slots)
            booking_ids = await self.kv.hmget(make_slot_to_id_key(), ordered_slots)

            resolved: list[tuple[str, str]] = []
            for slot, booking_id in zip(ordered_slots, booking_ids, strict=True):
                if not booking_id:
                    self._skip('missing_id', f'slot {slot} has no index entry')
                    continue
                resolved.append((slot, booking_id))

            raw_records = await self.kv.mget(
                [make_booking_key(booking_id=booking_id) for _, booking_id in resolved]
            )

            bookings: list[Booking] = []
            for (slot, booking_id), raw in zip(resolved, raw_records, strict=True):
                if raw is None:
                    self._skip('missing_record', f'booking {booking_id} (slot {slot}) has no record')
                    continue
                try:
                    booking = Booking.from_json(raw)
                except ValueError as e:
                    self._skip('malformed_record', f'booking {booking_id}: {e}')
                    continue
                if booking.time_slot != slot or booking.id != booking_id:
                    self._skip(
                        'slot_mismatch',
                        f'index {slot}->{booking_id} but record is '
                        f'{booking.id}@{booking.time_slot}',
                    )
                    continue
                bookings.append(booking)

            span.set_attribute('booking.count', len(bookings))
            self._record('list', 'success', started)
            return bookings

    async def _read(self, booking_id: str) -> tuple[Optional[Booking], Optional[str]]:
        """The decoded booking plus the raw record it came from; (None, None) if unusable."""
        raw = await self.kv.get(make_booking_key(booking_id=booking_id))
        if raw is None:
            return None, None
        try:
            return Booking.from_json(raw), raw
        except ValueError as e:
            metrics.record_index_inconsistency(kind='malformed_record')
            Logger.base.warning(f'⚠️ [BOOKING-REPO] Unreadable record {booking_id}: {e}')
            return None, None

    @Logger.io
    async def get_by_id(self, *, booking_id: str) -> Optional[Booking]:
        booking, _ = await self._read(booking_id)
        return booking

    # ========== Writes ==========

    @Logger.io
    async def create(self, *, candidate: BookingCandidate) -> Booking:
        started = time.perf_counter()
        booking = Booking.create(candidate)

        with self.tracer.start_as_current_span(
            'repo.booking.create',
            attributes={
                'booking.id': booking.id,
                'booking.time_slot': booking.time_slot,
                'booking.reservation_mode': self.reservation_mode,
            },
        ), self._recording_errors('create', started):
            slots_key = make_booked_slots_key()
            slot_map_key = make_slot_to_id_key()
            record_key = make_booking_key(booking_id=booking.id)
            record = booking.to_json().decode()

            if self.is_atomic:
                result = await self.kv.run_script(
                    'reserve_slot',
                    keys=[slots_key, slot_map_key, record_key],
                    args=[booking.time_slot, booking.id, record],
                )
                if int(result) != _WRITTEN:
                    self._record('create', 'conflict', started)
                    raise self._conflict('create', time_slot=booking.time_slot)
            else:
                if await self.kv.sismember(slots_key, booking.time_slot):
                    self._record('create', 'conflict', started)
                    raise self._conflict('create', time_slot=booking.time_slot)
                # Window: another create may pass the same check before this EXEC
                async with self.kv.transaction() as tx:
                    tx.sadd(slots_key, booking.time_slot)
                    tx.hset(slot_map_key, booking.time_slot, booking.id)
                    tx.set(record_key, record)

            Logger.base.info(
                f'📝 [BOOKING-REPO] Created booking {booking.id} for slot {booking.time_slot}'
            )
            self._record('create', 'success', started)
            return booking

    @Logger.io
    async def update(self, *, booking_id: str, patch: BookingPatch) -> Optional[Booking]:
        """
        Returns None if the booking does not exist.

        Raises:
            SlotConflictError: the new slot is held by another booking
            BookingChangedError: (atomic) the record changed under every attempt
        """
        started = time.perf_counter()
        patch = patch.validate()
        with self.tracer.start_as_current_span(
            'repo.booking.update',
            attributes={'booking.id': booking_id, 'booking.reservation_mode': self.reservation_mode},
        ) as span, self._recording_errors('update', started):
            if self.is_atomic:
                updated = await self._update_atomic(booking_id, patch, span, started)
            else:
                updated = await self._update_check_then_act(booking_id, patch, span, started)
            if updated is not None:
                self._record('update', 'success', started)
            return updated

    async def _update_atomic(
        self, booking_id: str, patch: BookingPatch, span: trace.Span, started: float
    ) -> Optional[Booking]:
        record_key = make_booking_key(booking_id=booking_id)
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            current, raw = await self._read(booking_id)
            if current is None:
                self._record('update', 'not_found', started)
                return None

            updated = current.apply(patch)
            result = int(
                await self.kv.run_script(
                    'update_booking',
                    keys=[make_booked_slots_key(), make_slot_to_id_key(), record_key],
                    args=[
                        current.time_slot,
                        updated.time_slot,
                        booking_id,
                        updated.to_json().decode(),
                        raw,
                    ],
                )
            )
            if result == _WRITTEN:
                self._log_update(current, updated, span)
                return updated
            if result == _RECORD_GONE:
                self._record('update', 'not_found', started)
                return None
            if result == _SLOT_TAKEN:
                self._record('update', 'conflict', started)
                raise self._conflict('update', time_slot=updated.time_slot, booking_id=booking_id)
            self._changed('update', booking_id=booking_id, attempt=attempt)

        self._record('update', 'changed', started)
        raise BookingChangedError(booking_id=booking_id)

    async def _update_check_then_act(
        self, booking_id: str, patch: BookingPatch, span: trace.Span, started: float
    ) -> Optional[Booking]:
        current, _ = await self._read(booking_id)
        if current is None:
            self._record('update', 'not_found', started)
            return None

        updated = current.apply(patch)
        record_key = make_booking_key(booking_id=booking_id)
        record = updated.to_json().decode()

        if updated.time_slot == current.time_slot:
            # Indexes untouched; XX so a concurrently deleted booking is not resurrected
            if not await self.kv.set(record_key, record, only_if_exists=True):
                self._record('update', 'not_found', started)
                return None
            return updated

        slots_key = make_booked_slots_key()
        slot_map_key = make_slot_to_id_key()
        if await self.kv.sismember(slots_key, updated.time_slot):
            self._record('update', 'conflict', started)
            raise self._conflict('update', time_slot=updated.time_slot, booking_id=booking_id)
        async with self.kv.transaction() as tx:
            tx.srem(slots_key, current.time_slot)
            tx.hdel(slot_map_key, current.time_slot)
            tx.sadd(slots_key, updated.time_slot)
            tx.hset(slot_map_key, updated.time_slot, booking_id)
            tx.set(record_key, record)

        self._log_update(current, updated, span)
        return updated

    def _log_update(self, current: Booking, updated: Booking, span: trace.Span) -> None:
        if updated.time_slot == current.time_slot:
            Logger.base.info(f'✏️ [BOOKING-REPO] Updated booking {current.id}')
            return
        span.set_attribute('booking.old_slot', current.time_slot)
        span.set_attribute('booking.new_slot', updated.time_slot)
        Logger.base.info(
            f'🔁 [BOOKING-REPO] Moved booking {current.id}: '
            f'{current.time_slot} -> {updated.time_slot}'
        )

    @Logger.io
    async def delete_by_id(self, *, booking_id: str) -> bool:
        """
        Raises:
            BookingChangedError: (atomic) the record changed under every attempt
        """
        started = time.perf_counter()
        with self.tracer.start_as_current_span(
            'repo.booking.delete', attributes={'booking.id': booking_id}
        ), self._recording_errors('delete', started):
            deleted = (
                await self._delete_atomic(booking_id, started)
                if self.is_atomic
                else await self._delete_check_then_act(booking_id, started)
            )
            if deleted:
                self._record('delete', 'success', started)
            return deleted

    async def _delete_atomic(self, booking_id: str, started: float) -> bool:
        record_key = make_booking_key(booking_id=booking_id)
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            # The slot is only known from the record
            current, raw = await self._read(booking_id)
            if current is None:
                self._record('delete', 'not_found', started)
                return False

            result = int(
                await self.kv.run_script(
                    'release_booking',
                    keys=[make_booked_slots_key(), make_slot_to_id_key(), record_key],
                    args=[current.time_slot, booking_id, raw],
                )
            )
            if result == _WRITTEN:
                self._log_delete(current)
                return True
            if result == _RECORD_GONE:
                self._record('delete', 'not_found', started)
                return False
            self._changed('delete', booking_id=booking_id, attempt=attempt)

        self._record('delete', 'changed', started)
        raise BookingChangedError(booking_id=booking_id)

    async def _delete_check_then_act(self, booking_id: str, started: float) -> bool:
        current, _ = await self._read(booking_id)
        if current is None:
            self._record('delete', 'not_found', started)
            return False

        async with self.kv.transaction() as tx:
            tx.srem(make_booked_slots_key(), current.time_slot)
            tx.hdel(make_slot_to_id_key(), current.time_slot)
            tx.delete(make_booking_key(booking_id=booking_id))

        self._log_delete(current)
        return True

    def _log_delete(self, booking: Booking) -> None:
        Logger.base.info(
            f'🗑️ [BOOKING-REPO] Deleted booking {booking.id} (slot {booking.time_slot})'
        )
