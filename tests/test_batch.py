"""
Unit tests for backend/agents/batch.py

The scheduler's sleep is replaced with a recorder, so stagger and cooldown
delays are asserted as values. Retries are limited to one attempt per slot
unless a test says otherwise.
"""
import asyncio
import pytest

from conftest import RecordingSleep

from backend.agents.batch import BatchScheduler
from backend.schemas import BatchState, SlotStatus
from backend.utils.exceptions import BatchExhaustionError, BatchInProgressError, ParseError
from backend.utils.retry import RetryConfig, RetryOrchestrator


class ScriptedGenerator:
    """Generator double: each attempt pops the next outcome (Trip or exception)."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    async def attempt(self, request=None, on_stage=None):
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def make_scheduler(generator, sleep, max_attempts=1, **kwargs):
    retry = RetryOrchestrator(RetryConfig(max_attempts=max_attempts), sleep=sleep, rand=lambda a, b: 0.0)
    return BatchScheduler(generator, retry=retry, sleep=sleep, **kwargs)


class TestGenerateBatch:
    def test_all_slots_succeed(self, sample_trip, recording_sleep):
        generator = ScriptedGenerator([sample_trip] * 3)
        scheduler = make_scheduler(generator, recording_sleep)

        results = asyncio.run(scheduler.generate_batch(count=3))

        assert results == [sample_trip] * 3
        assert recording_sleep.calls == [5.0, 10.0]
        assert scheduler.progress.state is BatchState.SUCCESS
        assert scheduler.progress.completed == 3
        assert scheduler.progress.statuses == (SlotStatus.COMPLETED,) * 3
        assert generator.requests == [None, None, None]

    def test_partial_success_keeps_positions(self, sample_trip, recording_sleep):
        generator = ScriptedGenerator([sample_trip, ValueError("fatal"), sample_trip])
        scheduler = make_scheduler(generator, recording_sleep)

        results = asyncio.run(scheduler.generate_batch(count=3))

        assert results == [sample_trip, None, sample_trip]
        assert scheduler.progress.status_list() == ["completed", "error", "completed"]
        assert scheduler.progress.state is BatchState.SUCCESS
        assert scheduler.progress.succeeded == 2
        assert scheduler.progress.failed == 1

    def test_cooldown_after_failed_slot(self, sample_trip, recording_sleep):
        generator = ScriptedGenerator([sample_trip, ValueError("fatal"), sample_trip])
        scheduler = make_scheduler(generator, recording_sleep)

        asyncio.run(scheduler.generate_batch(count=3))

        # stagger 5, cooldown 7, stagger 10
        assert recording_sleep.calls == [5.0, 7.0, 10.0]

    def test_no_cooldown_after_last_slot(self, sample_trip, recording_sleep):
        generator = ScriptedGenerator([sample_trip, sample_trip, ValueError("fatal")])
        scheduler = make_scheduler(generator, recording_sleep)

        results = asyncio.run(scheduler.generate_batch(count=3))

        assert results[2] is None
        assert recording_sleep.calls == [5.0, 10.0]

    def test_all_slots_fail(self, recording_sleep):
        generator = ScriptedGenerator([ValueError("fatal")] * 3)
        scheduler = make_scheduler(generator, recording_sleep)

        with pytest.raises(BatchExhaustionError) as exc_info:
            asyncio.run(scheduler.generate_batch(count=3))

        assert exc_info.value.attempted == 3
        assert recording_sleep.calls == [7.0, 5.0, 7.0, 10.0]
        assert scheduler.progress.state is BatchState.ERROR
        assert scheduler.progress.completed == 3
        assert not scheduler.is_running

    def test_retries_happen_inside_a_slot(self, sample_trip, recording_sleep):
        generator = ScriptedGenerator([ParseError("bad"), sample_trip])
        scheduler = make_scheduler(generator, recording_sleep, max_attempts=3)

        results = asyncio.run(scheduler.generate_batch(count=1))

        assert results == [sample_trip]
        assert recording_sleep.calls == [4.0]

    def test_slot_timeout_is_a_failed_slot(self, sample_trip):
        class SlowGenerator:
            async def attempt(self, request=None, on_stage=None):
                await asyncio.sleep(5)
                return sample_trip

        sleep = RecordingSleep()
        scheduler = make_scheduler(SlowGenerator(), sleep, item_timeout=0.01)

        with pytest.raises(BatchExhaustionError):
            asyncio.run(scheduler.generate_batch(count=1))
        assert scheduler.progress.statuses == (SlotStatus.ERROR,)

    def test_invalid_count(self, recording_sleep):
        scheduler = make_scheduler(ScriptedGenerator([]), recording_sleep)
        with pytest.raises(ValueError):
            asyncio.run(scheduler.generate_batch(count=0))


class TestBatchProgress:
    def test_snapshots_are_published_in_order(self, sample_trip, recording_sleep):
        snapshots = []
        generator = ScriptedGenerator([sample_trip, ValueError("fatal")])
        scheduler = make_scheduler(generator, recording_sleep, on_progress=snapshots.append)

        asyncio.run(scheduler.generate_batch(count=2))

        versions = [snapshot.version for snapshot in snapshots]
        assert versions == sorted(set(versions))
        completed = [snapshot.completed for snapshot in snapshots]
        assert completed == sorted(completed)
        assert all(snapshot.total == 2 for snapshot in snapshots)

        assert snapshots[0].state is BatchState.LOADING
        assert snapshots[0].status_list() == ["waiting", "waiting"]
        assert snapshots[1].status_list() == ["loading", "waiting"]
        assert snapshots[-1].state is BatchState.SUCCESS
        assert snapshots[-1].status_list() == ["completed", "error"]

    def test_statuses_only_move_forward(self, sample_trip, recording_sleep):
        order = {SlotStatus.WAITING: 0, SlotStatus.LOADING: 1, SlotStatus.COMPLETED: 2, SlotStatus.ERROR: 2}
        snapshots = []
        generator = ScriptedGenerator([ValueError("fatal"), sample_trip, sample_trip])
        scheduler = make_scheduler(generator, recording_sleep, on_progress=snapshots.append)

        asyncio.run(scheduler.generate_batch(count=3))

        for before, after in zip(snapshots, snapshots[1:]):
            for old, new in zip(before.statuses, after.statuses):
                assert order[new] >= order[old]
                if old in (SlotStatus.COMPLETED, SlotStatus.ERROR):
                    assert new is old

    def test_failing_observer_does_not_break_batch(self, sample_trip, recording_sleep):
        def observer(progress):
            raise RuntimeError("ui gone")

        generator = ScriptedGenerator([sample_trip])
        scheduler = make_scheduler(generator, recording_sleep, on_progress=observer)

        assert asyncio.run(scheduler.generate_batch(count=1)) == [sample_trip]

    def test_snapshots_are_immutable(self, sample_trip, recording_sleep):
        snapshots = []
        scheduler = make_scheduler(ScriptedGenerator([sample_trip]), recording_sleep, on_progress=snapshots.append)
        asyncio.run(scheduler.generate_batch(count=1))

        with pytest.raises(Exception):
            snapshots[0].completed = 5


class TestReentrancy:
    def test_second_batch_is_rejected_while_running(self, sample_trip, recording_sleep):
        started = asyncio.Event()
        release = asyncio.Event()

        class BlockingGenerator:
            async def attempt(self, request=None, on_stage=None):
                started.set()
                await release.wait()
                return sample_trip

        scheduler = make_scheduler(BlockingGenerator(), recording_sleep)

        async def scenario():
            task = asyncio.create_task(scheduler.generate_batch(count=1))
            await started.wait()
            assert scheduler.is_running
            with pytest.raises(BatchInProgressError):
                await scheduler.generate_batch(count=1)
            release.set()
            return await task

        assert asyncio.run(scenario()) == [sample_trip]
        assert not scheduler.is_running

    def test_scheduler_is_reusable_after_a_batch(self, sample_trip, recording_sleep):
        scheduler = make_scheduler(ScriptedGenerator([ValueError("fatal"), sample_trip]), recording_sleep)

        with pytest.raises(BatchExhaustionError):
            asyncio.run(scheduler.generate_batch(count=1))
        assert asyncio.run(scheduler.generate_batch(count=1)) == [sample_trip]
