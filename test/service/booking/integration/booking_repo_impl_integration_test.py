"""
Integration tests for BookingRepoImpl against an in-memory Redis (fakeredis + Lua)

Test Coverage:
1. Create / get / list round trip and the three store structures
2. Conflicts leave the store untouched (create and update)
3. Moving a booking releases the old slot and claims the new one
4. Delete removes all three entries and is idempotent
5. Listing skips inconsistent entries instead of failing
6. Concurrent creates for one slot (atomic mode)
7. A read overtaken by another mutation of the same booking: atomic mode retries
   from the fresh record, check_then_act acts on the stale one

The core behavioural tests run in both reservation modes.
"""

import asyncio
import os

from fakeredis import FakeAsyncRedis, FakeServer
import orjson
from prometheus_client import REGISTRY
import pytest
import pytest_asyncio

from src.platform.exception.exceptions import (
    BookingChangedError,
    SlotConflictError,
    StoreUnavailableError,
)
from src.platform.state.kv_store import KvStore
from src.service.booking.domain.entity.booking_entity import BookingCandidate, BookingPatch
from src.service.booking.driven_adapter.state.booking_repo_impl import (
    MAX_WRITE_ATTEMPTS,
    BookingRepoImpl,
)


pytestmark = pytest.mark.integration

# Get key prefix for test isolation
_KEY_PREFIX = os.getenv('KVROCKS_KEY_PREFIX', 'test_')
SLOTS_KEY = f'{_KEY_PREFIX}booked-time-slots'
SLOT_MAP_KEY = f'{_KEY_PREFIX}slot-to-id-map'

SLOT_A = '2024-06-25 09:00-10:30'
SLOT_B = '2024-06-25 11:00-12:30'
SLOT_C = '2024-06-26 14:00-15:30'


def _record_key(booking_id: str) -> str:
    return f'{_KEY_PREFIX}booking:{booking_id}'


def _candidate(time_slot: str, name: str = 'Ada') -> BookingCandidate:
    return BookingCandidate(name=name, email=f'{name.lower()}@example.com', time_slot=time_slot)


async def _snapshot(client: FakeAsyncRedis) -> tuple[set, dict, list]:
    return (
        await client.smembers(SLOTS_KEY),
        await client.hgetall(SLOT_MAP_KEY),
        sorted(await client.keys(f'{_KEY_PREFIX}booking:*')),
    )


@pytest.fixture(params=['atomic', 'check_then_act'])
def reservation_mode(request: pytest.FixtureRequest) -> str:
    return request.param


@pytest_asyncio.fixture
async def repo(kv_store: KvStore, reservation_mode: str) -> BookingRepoImpl:
    return BookingRepoImpl(kv_store=kv_store, reservation_mode=reservation_mode)  # type: ignore[arg-type]


@pytest_asyncio.fixture
async def atomic_repo(kv_store: KvStore) -> BookingRepoImpl:
    return BookingRepoImpl(kv_store=kv_store, reservation_mode='atomic')


@pytest_asyncio.fixture
async def cta_repo(kv_store: KvStore) -> BookingRepoImpl:
    return BookingRepoImpl(kv_store=kv_store, reservation_mode='check_then_act')


def _sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def _serve_stale_read_once(repo: BookingRepoImpl, stale, monkeypatch) -> None:
    """The next record read returns `stale`; later reads hit the store."""
    real_read = repo._read
    served = []

    async def read(booking_id):
        if not served:
            served.append(booking_id)
            return stale
        return await real_read(booking_id)

    monkeypatch.setattr(repo, '_read', read)


def _release_checks_together(kv_store: KvStore, *, parties: int, monkeypatch) -> None:
    """Hold every SISMEMBER answer until `parties` callers have asked."""
    real_sismember = kv_store.sismember
    arrived = []
    all_checked = asyncio.Event()

    async def sismember(key, member):
        result = await real_sismember(key, member)
        arrived.append(member)
        if len(arrived) == parties:
            all_checked.set()
        await all_checked.wait()
        return result

    monkeypatch.setattr(kv_store, 'sismember', sismember)


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_then_get_and_list(self, repo, fake_kvrocks):
        # When
        booking = await repo.create(candidate=_candidate(SLOT_A))

        # Then: readable by id and listed
        assert await repo.get_by_id(booking_id=booking.id) == booking
        assert await repo.list_all() == [booking]

        # And: all three structures agree
        slots, slot_map, _ = await _snapshot(fake_kvrocks)
        assert slots == {SLOT_A}
        assert slot_map == {SLOT_A: booking.id}
        record = orjson.loads(await fake_kvrocks.get(_record_key(booking.id)))
        assert record['timeSlot'] == SLOT_A
        assert record['id'] == booking.id

    @pytest.mark.asyncio
    async def test_get_unknown_id_returns_none(self, repo, fake_kvrocks):
        assert await repo.get_by_id(booking_id='no-such-booking') is None

    @pytest.mark.asyncio
    async def test_list_is_sorted_and_honours_exclude(self, repo, fake_kvrocks):
        later = await repo.create(candidate=_candidate(SLOT_C))
        earlier = await repo.create(candidate=_candidate(SLOT_A))

        assert await repo.list_all() == [earlier, later]
        assert await repo.list_all(exclude_slot=SLOT_A) == [later]
        assert await repo.list_all(exclude_slot='not-booked') == [earlier, later]

    @pytest.mark.asyncio
    async def test_empty_store_lists_nothing(self, repo, fake_kvrocks):
        assert await repo.list_all() == []


class TestConflicts:
    @pytest.mark.asyncio
    async def test_create_on_taken_slot_changes_nothing(self, repo, fake_kvrocks):
        # Given
        await repo.create(candidate=_candidate(SLOT_A))
        before = await _snapshot(fake_kvrocks)

        # When / Then
        with pytest.raises(SlotConflictError) as exc_info:
            await repo.create(candidate=_candidate(SLOT_A, name='Grace'))

        assert exc_info.value.status_code == 409
        assert exc_info.value.context == {'timeSlot': SLOT_A}
        assert await _snapshot(fake_kvrocks) == before

    @pytest.mark.asyncio
    async def test_update_to_taken_slot_changes_nothing(self, repo, fake_kvrocks):
        # Given
        first = await repo.create(candidate=_candidate(SLOT_A))
        await repo.create(candidate=_candidate(SLOT_B, name='Grace'))
        before = await _snapshot(fake_kvrocks)

        # When / Then
        with pytest.raises(SlotConflictError) as exc_info:
            await repo.update(booking_id=first.id, patch=BookingPatch(time_slot=SLOT_B))

        assert exc_info.value.context == {'timeSlot': SLOT_B, 'bookingId': first.id}
        assert await _snapshot(fake_kvrocks) == before
        assert (await repo.get_by_id(booking_id=first.id)).time_slot == SLOT_A


class TestUpdate:
    @pytest.mark.asyncio
    async def test_move_to_free_slot_updates_both_indexes(self, repo, fake_kvrocks):
        booking = await repo.create(candidate=_candidate(SLOT_A))

        moved = await repo.update(booking_id=booking.id, patch=BookingPatch(time_slot=SLOT_B))

        assert moved.id == booking.id
        assert moved.time_slot == SLOT_B
        slots, slot_map, _ = await _snapshot(fake_kvrocks)
        assert slots == {SLOT_B}
        assert slot_map == {SLOT_B: booking.id}
        assert await repo.get_by_id(booking_id=booking.id) == moved

    @pytest.mark.asyncio
    async def test_same_slot_update_rewrites_record_only(self, repo, fake_kvrocks):
        booking = await repo.create(candidate=_candidate(SLOT_A))
        indexes_before = (await _snapshot(fake_kvrocks))[:2]

        updated = await repo.update(
            booking_id=booking.id, patch=BookingPatch(name='Grace', company='ACME')
        )

        assert updated.name == 'Grace'
        assert updated.company == 'ACME'
        assert (await _snapshot(fake_kvrocks))[:2] == indexes_before
        assert await repo.get_by_id(booking_id=booking.id) == updated

    @pytest.mark.asyncio
    async def test_update_unknown_booking_returns_none(self, repo, fake_kvrocks):
        assert await repo.update(booking_id='missing', patch=BookingPatch(name='X')) is None
        assert await _snapshot(fake_kvrocks) == (set(), {}, [])


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_all_entries_and_is_idempotent(self, repo, fake_kvrocks):
        booking = await repo.create(candidate=_candidate(SLOT_A))

        assert await repo.delete_by_id(booking_id=booking.id) is True
        assert await _snapshot(fake_kvrocks) == (set(), {}, [])

        assert await repo.delete_by_id(booking_id=booking.id) is False

    @pytest.mark.asyncio
    async def test_released_slot_can_be_booked_again(self, repo, fake_kvrocks):
        first = await repo.create(candidate=_candidate(SLOT_A))
        await repo.delete_by_id(booking_id=first.id)

        second = await repo.create(candidate=_candidate(SLOT_A, name='Grace'))

        assert await repo.list_all() == [second]


class TestScenarios:
    @pytest.mark.asyncio
    async def test_book_move_rebook_original_slot(self, repo, fake_kvrocks):
        # A books SLOT_A, moves to SLOT_B, B then books SLOT_A
        a = await repo.create(candidate=_candidate(SLOT_A))
        await repo.update(booking_id=a.id, patch=BookingPatch(time_slot=SLOT_B))
        b = await repo.create(candidate=_candidate(SLOT_A, name='Grace'))

        listed = await repo.list_all()
        assert [(x.id, x.time_slot) for x in listed] == [(b.id, SLOT_A), (a.id, SLOT_B)]

    @pytest.mark.asyncio
    async def test_delete_then_move_into_released_slot(self, repo, fake_kvrocks):
        a = await repo.create(candidate=_candidate(SLOT_A))
        b = await repo.create(candidate=_candidate(SLOT_B, name='Grace'))

        await repo.delete_by_id(booking_id=a.id)
        moved = await repo.update(booking_id=b.id, patch=BookingPatch(time_slot=SLOT_A))

        assert await repo.list_all() == [moved]
        slots, slot_map, records = await _snapshot(fake_kvrocks)
        assert slots == {SLOT_A}
        assert slot_map == {SLOT_A: b.id}
        assert records == [_record_key(b.id)]


class TestInconsistentStore:
    @pytest.mark.asyncio
    async def test_list_skips_slot_without_index_entry(self, repo, fake_kvrocks):
        kept = await repo.create(candidate=_candidate(SLOT_A))
        await fake_kvrocks.sadd(SLOTS_KEY, SLOT_B)

        assert await repo.list_all() == [kept]

    @pytest.mark.asyncio
    async def test_list_skips_index_entry_without_record(self, repo, fake_kvrocks):
        kept = await repo.create(candidate=_candidate(SLOT_A))
        lost = await repo.create(candidate=_candidate(SLOT_B, name='Grace'))
        await fake_kvrocks.delete(_record_key(lost.id))

        assert await repo.list_all() == [kept]

    @pytest.mark.asyncio
    async def test_list_skips_malformed_record(self, repo, fake_kvrocks):
        kept = await repo.create(candidate=_candidate(SLOT_A))
        broken = await repo.create(candidate=_candidate(SLOT_B, name='Grace'))
        await fake_kvrocks.set(_record_key(broken.id), '{not json')

        assert await repo.list_all() == [kept]
        assert await repo.get_by_id(booking_id=broken.id) is None

    @pytest.mark.asyncio
    async def test_list_skips_record_pointing_at_other_slot(self, repo, fake_kvrocks):
        kept = await repo.create(candidate=_candidate(SLOT_A))
        stale = await repo.create(candidate=_candidate(SLOT_B, name='Grace'))
        record = orjson.loads(await fake_kvrocks.get(_record_key(stale.id)))
        await fake_kvrocks.set(_record_key(stale.id), orjson.dumps(record | {'timeSlot': SLOT_C}))

        assert await repo.list_all() == [kept]


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_creates_for_one_slot_yield_single_winner(self, kv_store, fake_kvrocks):
        # Given
        repo = BookingRepoImpl(kv_store=kv_store, reservation_mode='atomic')

        # When: 10 visitors race for the same slot
        results = await asyncio.gather(
            *(repo.create(candidate=_candidate(SLOT_A, name=f'V{i}')) for i in range(10)),
            return_exceptions=True,
        )

        # Then
        winners = [r for r in results if not isinstance(r, BaseException)]
        conflicts = [r for r in results if isinstance(r, SlotConflictError)]
        assert len(winners) == 1
        assert len(conflicts) == 9
        slots, slot_map, records = await _snapshot(fake_kvrocks)
        assert slots == {SLOT_A}
        assert slot_map == {SLOT_A: winners[0].id}
        assert records == [_record_key(winners[0].id)]


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_connection_error_surfaces_as_store_unavailable(self, reservation_mode):
        # Given: a store whose server is down
        server = FakeServer()
        server.connected = False
        client = FakeAsyncRedis(server=server, decode_responses=True)
        repo = BookingRepoImpl(
            kv_store=KvStore(client_factory=lambda: client),
            reservation_mode=reservation_mode,  # type: ignore[arg-type]
        )

        # When / Then
        with pytest.raises(StoreUnavailableError):
            await repo.list_all()
        with pytest.raises(StoreUnavailableError):
            await repo.create(candidate=_candidate(SLOT_A))

    @pytest.mark.asyncio
    async def test_store_failure_is_counted_as_error(self, reservation_mode):
        server = FakeServer()
        server.connected = False
        client = FakeAsyncRedis(server=server, decode_responses=True)
        repo = BookingRepoImpl(
            kv_store=KvStore(client_factory=lambda: client),
            reservation_mode=reservation_mode,  # type: ignore[arg-type]
        )
        before = _sample('booking_operations_total', operation='delete', result='error')

        with pytest.raises(StoreUnavailableError):
            await repo.delete_by_id(booking_id='any')

        assert _sample('booking_operations_total', operation='delete', result='error') == before + 1


class TestStaleReads:
    """A mutation whose read is overtaken by another mutation of the same booking."""

    @pytest.mark.asyncio
    async def test_update_from_stale_read_moves_from_current_slot(
        self, atomic_repo, fake_kvrocks, monkeypatch
    ):
        # Given: A read at SLOT_A, then moved to SLOT_B by someone else
        a = await atomic_repo.create(candidate=_candidate(SLOT_A))
        stale = await atomic_repo._read(a.id)
        await atomic_repo.update(booking_id=a.id, patch=BookingPatch(time_slot=SLOT_B))
        _serve_stale_read_once(atomic_repo, stale, monkeypatch)
        stale_before = _sample('booking_stale_writes_total', operation='update')

        # When
        moved = await atomic_repo.update(booking_id=a.id, patch=BookingPatch(time_slot=SLOT_C))

        # Then: retried from the fresh record, SLOT_B released
        assert moved.time_slot == SLOT_C
        slots, slot_map, records = await _snapshot(fake_kvrocks)
        assert slots == {SLOT_C}
        assert slot_map == {SLOT_C: a.id}
        assert records == [_record_key(a.id)]
        assert _sample('booking_stale_writes_total', operation='update') == stale_before + 1

    @pytest.mark.asyncio
    async def test_same_slot_update_from_stale_read_keeps_newer_slot(
        self, atomic_repo, fake_kvrocks, monkeypatch
    ):
        a = await atomic_repo.create(candidate=_candidate(SLOT_A))
        stale = await atomic_repo._read(a.id)
        await atomic_repo.update(booking_id=a.id, patch=BookingPatch(time_slot=SLOT_B))
        _serve_stale_read_once(atomic_repo, stale, monkeypatch)

        updated = await atomic_repo.update(booking_id=a.id, patch=BookingPatch(name='Grace'))

        assert (updated.name, updated.time_slot) == ('Grace', SLOT_B)
        assert await atomic_repo.list_all() == [updated]

    @pytest.mark.asyncio
    async def test_delete_from_stale_read_releases_current_slot(
        self, atomic_repo, fake_kvrocks, monkeypatch
    ):
        # Given: A read at SLOT_A, moved to SLOT_B, and SLOT_A taken by B
        a = await atomic_repo.create(candidate=_candidate(SLOT_A))
        stale = await atomic_repo._read(a.id)
        await atomic_repo.update(booking_id=a.id, patch=BookingPatch(time_slot=SLOT_B))
        b = await atomic_repo.create(candidate=_candidate(SLOT_A, name='Grace'))
        _serve_stale_read_once(atomic_repo, stale, monkeypatch)

        # When
        assert await atomic_repo.delete_by_id(booking_id=a.id) is True

        # Then: SLOT_B is free again and B keeps SLOT_A
        slots, slot_map, records = await _snapshot(fake_kvrocks)
        assert slots == {SLOT_A}
        assert slot_map == {SLOT_A: b.id}
        assert records == [_record_key(b.id)]
        await atomic_repo.create(candidate=_candidate(SLOT_B, name='Linus'))

    @pytest.mark.asyncio
    async def test_gives_up_when_record_keeps_changing(
        self, atomic_repo, fake_kvrocks, monkeypatch
    ):
        a = await atomic_repo.create(candidate=_candidate(SLOT_A))
        stale = await atomic_repo._read(a.id)
        await atomic_repo.update(booking_id=a.id, patch=BookingPatch(name='Grace'))
        before = await _snapshot(fake_kvrocks)
        reads = []

        async def always_stale(booking_id):
            reads.append(booking_id)
            return stale

        monkeypatch.setattr(atomic_repo, '_read', always_stale)

        with pytest.raises(BookingChangedError) as exc_info:
            await atomic_repo.update(booking_id=a.id, patch=BookingPatch(time_slot=SLOT_B))
        with pytest.raises(BookingChangedError):
            await atomic_repo.delete_by_id(booking_id=a.id)

        assert exc_info.value.status_code == 409
        assert len(reads) == 2 * MAX_WRITE_ATTEMPTS
        assert await _snapshot(fake_kvrocks) == before


class TestCheckThenActRaces:
    """check_then_act acts on what it read; these outcomes are the documented races."""

    @pytest.mark.asyncio
    async def test_concurrent_creates_last_writer_wins(self, cta_repo, fake_kvrocks, monkeypatch):
        # Given: both creates pass the membership check before either writes
        _release_checks_together(cta_repo.kv, parties=2, monkeypatch=monkeypatch)

        # When
        first, second = await asyncio.gather(
            cta_repo.create(candidate=_candidate(SLOT_A)),
            cta_repo.create(candidate=_candidate(SLOT_A, name='Grace')),
        )

        # Then: both records exist, the index holds one of them, list shows only that one
        slots, slot_map, records = await _snapshot(fake_kvrocks)
        assert slots == {SLOT_A}
        assert slot_map[SLOT_A] in {first.id, second.id}
        assert records == sorted([_record_key(first.id), _record_key(second.id)])
        assert [b.id for b in await cta_repo.list_all()] == [slot_map[SLOT_A]]

    @pytest.mark.asyncio
    async def test_delete_from_stale_read_leaves_moved_slot_booked(
        self, cta_repo, fake_kvrocks, monkeypatch
    ):
        a = await cta_repo.create(candidate=_candidate(SLOT_A))
        stale = await cta_repo._read(a.id)
        await cta_repo.update(booking_id=a.id, patch=BookingPatch(time_slot=SLOT_B))
        _serve_stale_read_once(cta_repo, stale, monkeypatch)

        assert await cta_repo.delete_by_id(booking_id=a.id) is True

        slots, slot_map, records = await _snapshot(fake_kvrocks)
        assert slots == {SLOT_B}
        assert slot_map == {SLOT_B: a.id}
        assert records == []
        assert await cta_repo.list_all() == []
        with pytest.raises(SlotConflictError):
            await cta_repo.create(candidate=_candidate(SLOT_B, name='Grace'))
