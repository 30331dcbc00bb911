"""Behaviour shared by every IndexingQueue implementation.

Each test runs against the in-memory queue and the SQLAlchemy queue on
in-memory SQLite.
"""

from datetime import timedelta

import pytest

from indexsync.domain.indexing.model.job import FailureResolution
from indexsync.infrastructure.queue.durable import SQLAlchemyIndexingQueue
from indexsync.infrastructure.queue.memory import InMemoryIndexingQueue


@pytest.fixture(params=["memory", "durable"])
def queue(request, clock, session_factory):
    if request.param == "memory":
        return InMemoryIndexingQueue(clock=clock)
    return SQLAlchemyIndexingQueue(session_factory, clock=clock)


class TestEnqueueAndReserve:
    @pytest.mark.asyncio
    async def test_reserve_increments_attempts(self, queue, make_event):
        await queue.enqueue(make_event("j1", "r1"))

        jobs = await queue.reserve_batch(10)

        assert [job.id for job in jobs] == ["j1"]
        assert jobs[0].attempts == 1
        assert jobs[0].max_attempts == 5
        assert jobs[0].entity_id == "r1"

    @pytest.mark.asyncio
    async def test_reserved_jobs_are_not_handed_out_twice(self, queue, make_event):
        await queue.enqueue(make_event("j1", "r1"))

        first = await queue.reserve_batch(10)
        second = await queue.reserve_batch(10)

        assert len(first) == 1
        assert second == []

    @pytest.mark.asyncio
    async def test_orders_by_cursor_then_id(self, queue, make_event, clock):
        await queue.enqueue(make_event("j-late", "r1", cursor=clock.now))
        await queue.enqueue(make_event("j-b", "r2", cursor=clock.now - timedelta(minutes=1)))
        await queue.enqueue(make_event("j-a", "r3", cursor=clock.now - timedelta(minutes=1)))
        await queue.enqueue(make_event("j-early", "r4", cursor=clock.now - timedelta(hours=1)))

        jobs = await queue.reserve_batch(10)

        assert [job.id for job in jobs] == ["j-early", "j-a", "j-b", "j-late"]

    @pytest.mark.asyncio
    async def test_respects_limit(self, queue, make_event):
        for i in range(3):
            await queue.enqueue(make_event(f"j{i}", f"r{i}"))

        assert len(await queue.reserve_batch(2)) == 2
        assert len(await queue.reserve_batch(2)) == 1
        assert await queue.reserve_batch(0) == []

    @pytest.mark.asyncio
    async def test_future_jobs_wait_until_available(self, queue, make_event, clock):
        await queue.enqueue(make_event("j1", "r1", available_at=clock.now + timedelta(seconds=30)))

        assert await queue.reserve_batch(10) == []
        clock.advance(seconds=30)
        assert [job.id for job in await queue.reserve_batch(10)] == ["j1"]

    @pytest.mark.asyncio
    async def test_event_max_attempts_overrides_default(self, queue, make_event):
        await queue.enqueue(make_event("j1", "r1", max_attempts=2))

        [job] = await queue.reserve_batch(1)

        assert job.max_attempts == 2


class TestComplete:
    @pytest.mark.asyncio
    async def test_complete_is_idempotent(self, queue, make_event):
        await queue.enqueue(make_event("j1", "r1"))
        await queue.reserve_batch(1)

        await queue.complete("j1")
        await queue.complete("j1")
        await queue.complete("never-existed")

        assert await queue.reserve_batch(10) == []
        assert await queue.dead_letters() == []


class TestFail:
    @pytest.mark.asyncio
    async def test_retry_is_delayed_by_backoff(self, queue, make_event, clock):
        await queue.enqueue(make_event("j1", "r1"))
        [job] = await queue.reserve_batch(1)

        resolution = await queue.fail(job, RuntimeError("search unavailable"))

        assert resolution is FailureResolution.RETRY
        assert await queue.reserve_batch(1) == []
        clock.advance(milliseconds=999)
        assert await queue.reserve_batch(1) == []
        clock.advance(milliseconds=1)
        [retried] = await queue.reserve_batch(1)
        assert retried.attempts == 2
        assert retried.last_error == "search unavailable"

    @pytest.mark.asyncio
    async def test_exhausted_job_is_dead_lettered_once(self, queue, make_event, clock):
        await queue.enqueue(make_event("j1", "r1", max_attempts=2))

        [job] = await queue.reserve_batch(1)
        assert await queue.fail(job, RuntimeError("first")) is FailureResolution.RETRY
        clock.advance(seconds=2)
        [job] = await queue.reserve_batch(1)
        assert await queue.fail(job, RuntimeError("second")) is FailureResolution.DEAD_LETTER

        clock.advance(seconds=60)
        assert await queue.reserve_batch(10) == []
        dead = await queue.dead_letters()
        assert len(dead) == 1
        assert dead[0].job_id == "j1"
        assert dead[0].entity_id == "r1"
        assert dead[0].attempts == 2
        assert dead[0].error == "second"
        assert dead[0].failed_at == clock.now

    @pytest.mark.asyncio
    async def test_unknown_job_resolves_to_dead_letter(self, queue, make_job):
        resolution = await queue.fail(make_job("ghost"), RuntimeError("boom"))

        assert resolution is FailureResolution.DEAD_LETTER
        assert await queue.dead_letters() == []

    @pytest.mark.asyncio
    async def test_dead_letter_error_is_truncated(self, queue, make_event):
        await queue.enqueue(make_event("j1", "r1", max_attempts=1))
        [job] = await queue.reserve_batch(1)

        await queue.fail(job, RuntimeError("x" * 5000))

        [dead] = await queue.dead_letters()
        assert len(dead.error) == 1001
        assert dead.error.endswith("…")

    @pytest.mark.asyncio
    async def test_dead_letters_newest_first(self, queue, make_event, clock):
        for i in range(3):
            await queue.enqueue(make_event(f"j{i}", f"r{i}", max_attempts=1))
        for job in await queue.reserve_batch(3):
            clock.advance(seconds=1)
            await queue.fail(job, RuntimeError(job.id))

        dead = await queue.dead_letters()
        assert [item.job_id for item in dead] == ["j2", "j1", "j0"]
        assert [item.job_id for item in await queue.dead_letters(limit=1)] == ["j2"]


class TestEnqueueIdempotency:
    async def _fail_once(self, queue, make_event, clock, cursor):
        await queue.enqueue(make_event("j1", "r1", cursor=cursor))
        [job] = await queue.reserve_batch(1)
        await queue.fail(job, RuntimeError("boom"))
        clock.advance(seconds=5)

    @pytest.mark.asyncio
    async def test_duplicate_with_same_cursor_keeps_retry_state(self, queue, make_event, clock):
        cursor = clock.now
        await self._fail_once(queue, make_event, clock, cursor)

        await queue.enqueue(make_event("j1", "r1", cursor=cursor))

        [job] = await queue.reserve_batch(1)
        assert job.attempts == 2
        assert job.last_error == "boom"

    @pytest.mark.asyncio
    async def test_older_cursor_keeps_retry_state(self, queue, make_event, clock):
        cursor = clock.now
        await self._fail_once(queue, make_event, clock, cursor)

        await queue.enqueue(make_event("j1", "r1", cursor=cursor - timedelta(seconds=1)))

        [job] = await queue.reserve_batch(1)
        assert job.attempts == 2

    @pytest.mark.asyncio
    async def test_newer_cursor_resets_retry_state(self, queue, make_event, clock):
        cursor = clock.now
        await self._fail_once(queue, make_event, clock, cursor)

        await queue.enqueue(make_event("j1", "r1", cursor=cursor + timedelta(seconds=1)))

        [job] = await queue.reserve_batch(1)
        assert job.attempts == 1
        assert job.last_error is None

    @pytest.mark.asyncio
    async def test_missing_cursors_keep_retry_state(self, queue, make_event, clock):
        await self._fail_once(queue, make_event, clock, None)

        await queue.enqueue(make_event("j1", "r1"))

        [job] = await queue.reserve_batch(1)
        assert job.attempts == 2

    @pytest.mark.asyncio
    async def test_reenqueue_replaces_payload(self, queue, make_event, clock):
        await queue.enqueue(make_event("j1", "r1"))
        await queue.enqueue(make_event("j1", "r1-renamed"))

        jobs = await queue.reserve_batch(10)

        assert [job.entity_id for job in jobs] == ["r1-renamed"]


class TestReleaseStale:
    @pytest.mark.asyncio
    async def test_releases_only_expired_reservations(self, queue, make_event, clock):
        await queue.enqueue(make_event("j1", "r1"))
        await queue.reserve_batch(1)
        clock.advance(seconds=100)
        await queue.enqueue(make_event("j2", "r2"))
        await queue.reserve_batch(1)

        clock.advance(seconds=250)
        released = await queue.release_stale(300)

        assert released == 1
        [job] = await queue.reserve_batch(10)
        assert job.id == "j1"
        assert job.attempts == 2

    @pytest.mark.asyncio
    async def test_nothing_to_release(self, queue, make_event):
        await queue.enqueue(make_event("j1", "r1"))

        assert await queue.release_stale(300) == 0


class TestReservationOwnership:
    @pytest.mark.asyncio
    async def test_reservations_get_distinct_ids(self, queue, make_event):
        await queue.enqueue(make_event("j1", "r1"))
        await queue.enqueue(make_event("j2", "r2"))

        [first] = await queue.reserve_batch(1)
        [second] = await queue.reserve_batch(1)

        assert first.reservation_id is not None
        assert second.reservation_id is not None
        assert first.reservation_id != second.reservation_id

    @pytest.mark.asyncio
    async def test_complete_with_current_reservation_removes_job(self, queue, make_event):
        await queue.enqueue(make_event("j1", "r1"))
        [job] = await queue.reserve_batch(1)

        await queue.complete(job.id, job.reservation_id)

        assert await queue.pending_count() == 0

    @pytest.mark.asyncio
    async def test_newer_event_during_flight_survives_completion(self, queue, make_event, clock):
        await queue.enqueue(make_event("review:r1", "r1", cursor=clock.now))
        [in_flight] = await queue.reserve_batch(1)
        await queue.enqueue(
            make_event("review:r1", "r1", cursor=clock.now + timedelta(seconds=1))
        )

        await queue.complete(in_flight.id, in_flight.reservation_id)

        assert await queue.pending_count() == 1
        [job] = await queue.reserve_batch(1)
        assert job.cursor == clock.now + timedelta(seconds=1)
        assert job.attempts == 1

    @pytest.mark.asyncio
    async def test_failing_superseded_reservation_leaves_newer_job(
        self, queue, make_event, clock
    ):
        await queue.enqueue(make_event("review:r1", "r1", cursor=clock.now, max_attempts=1))
        [in_flight] = await queue.reserve_batch(1)
        await queue.enqueue(
            make_event("review:r1", "r1", cursor=clock.now + timedelta(seconds=1))
        )

        resolution = await queue.fail(in_flight, RuntimeError("timeout"))

        assert resolution is FailureResolution.RETRY
        assert await queue.dead_letters() == []
        [job] = await queue.reserve_batch(1)
        assert job.last_error is None
        assert job.cursor == clock.now + timedelta(seconds=1)

    @pytest.mark.asyncio
    async def test_released_reservation_cannot_complete(self, queue, make_event, clock):
        await queue.enqueue(make_event("j1", "r1"))
        [stale] = await queue.reserve_batch(1)
        clock.advance(seconds=400)
        assert await queue.release_stale(300) == 1

        await queue.complete(stale.id, stale.reservation_id)

        assert await queue.pending_count() == 1
        [job] = await queue.reserve_batch(1)
        assert job.reservation_id != stale.reservation_id

    @pytest.mark.asyncio
    async def test_pending_count_includes_reserved_jobs(self, queue, make_event):
        await queue.enqueue(make_event("j1", "r1"))
        await queue.enqueue(make_event("j2", "r2"))
        await queue.reserve_batch(1)

        assert await queue.pending_count() == 2
