"""Tests for the section worker retry state machine."""

import asyncio
from unittest.mock import MagicMock

import pytest

from sectionforge.models import GenerationRun, SectionStatus
from sectionforge.orchestrator import ProgressTracker, SectionWorker, WorkerOutcome
from sectionforge.service import PermanentServiceError

from tests.helpers import FakeGenerationService, always_fail, display_only_result, make_template


@pytest.fixture
def template():
    return make_template(["a", "b"])


@pytest.fixture
def tracker(memory_history):
    run = GenerationRun.create("run_1", "sample", ["a", "b"], {"document_name": "Sample Industry"})
    return ProgressTracker(run, memory_history)


@pytest.fixture
def scheduler():
    return MagicMock()


def make_worker(tracker, service, scheduler, **kwargs) -> SectionWorker:
    kwargs.setdefault("max_retries", 2)
    kwargs.setdefault("retry_delay_seconds", 5.0)
    return SectionWorker(tracker, service, scheduler, **kwargs)


class TestSectionWorker:
    """Tests for SectionWorker.attempt."""

    @pytest.mark.asyncio
    async def test_success(self, tracker, scheduler, template):
        service = FakeGenerationService()
        worker = make_worker(tracker, service, scheduler)

        outcome = await worker.attempt(template.sections[0])

        state = tracker.get_state("a")
        assert outcome == WorkerOutcome.COMPLETED
        assert state.status == SectionStatus.COMPLETED
        assert state.progress_percent == 100
        assert state.content == "<div class='section'>a</div>"
        assert state.title == "A (generated)"
        assert state.error is None
        scheduler.schedule_retry.assert_not_called()

    @pytest.mark.asyncio
    async def test_passes_run_context(self, tracker, scheduler, template):
        service = FakeGenerationService()
        await make_worker(tracker, service, scheduler).attempt(template.sections[0])

        assert service.contexts == [{"document_name": "Sample Industry"}]

    @pytest.mark.asyncio
    async def test_display_only_success(self, tracker, scheduler, template):
        service = FakeGenerationService({"a": [display_only_result("a")]})

        outcome = await make_worker(tracker, service, scheduler).attempt(template.sections[0])

        state = tracker.get_state("a")
        assert outcome == WorkerOutcome.COMPLETED
        assert state.structured_data is None
        assert state.title is None
        assert state.content == "Plain text for a"

    @pytest.mark.asyncio
    async def test_failure_schedules_retry(self, tracker, scheduler, template):
        service = FakeGenerationService({"a": always_fail(1)})
        worker = make_worker(tracker, service, scheduler, retry_delay_seconds=5.0)

        outcome = await worker.attempt(template.sections[0])

        state = tracker.get_state("a")
        assert outcome == WorkerOutcome.RETRY_SCHEDULED
        assert state.status == SectionStatus.PENDING
        assert state.retry_count == 1
        assert state.progress_percent == 0
        assert state.error == "Service unavailable"
        scheduler.schedule_retry.assert_called_once_with(template.sections[0], 5.0)

    @pytest.mark.asyncio
    async def test_budget_exhausted(self, tracker, scheduler, template):
        service = FakeGenerationService({"a": always_fail(3)})
        worker = make_worker(tracker, service, scheduler, max_retries=2)

        outcomes = [await worker.attempt(template.sections[0]) for _ in range(3)]

        assert outcomes == [
            WorkerOutcome.RETRY_SCHEDULED,
            WorkerOutcome.RETRY_SCHEDULED,
            WorkerOutcome.FAILED,
        ]
        state = tracker.get_state("a")
        assert state.status == SectionStatus.FAILED
        assert state.retry_count == 2
        assert scheduler.schedule_retry.call_count == 2
        assert service.attempts["a"] == 3

    @pytest.mark.asyncio
    async def test_zero_retries_fails_immediately(self, tracker, scheduler, template):
        service = FakeGenerationService({"a": always_fail(1)})
        outcome = await make_worker(tracker, service, scheduler, max_retries=0).attempt(
            template.sections[0]
        )

        assert outcome == WorkerOutcome.FAILED
        scheduler.schedule_retry.assert_not_called()

    @pytest.mark.asyncio
    async def test_permanent_errors_use_same_budget(self, tracker, scheduler, template):
        service = FakeGenerationService({"a": [PermanentServiceError("Bad request")]})
        outcome = await make_worker(tracker, service, scheduler).attempt(template.sections[0])

        assert outcome == WorkerOutcome.RETRY_SCHEDULED
        assert tracker.get_state("a").error == "Bad request"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_a_failure(self, tracker, scheduler, template):
        service = FakeGenerationService({"a": [ValueError()]})
        outcome = await make_worker(tracker, service, scheduler).attempt(template.sections[0])

        assert outcome == WorkerOutcome.RETRY_SCHEDULED
        assert tracker.get_state("a").error == "ValueError"

    @pytest.mark.asyncio
    async def test_discarded_before_attempt(self, tracker, scheduler, template):
        service = FakeGenerationService()
        tracker.discard()

        outcome = await make_worker(tracker, service, scheduler).attempt(template.sections[0])

        assert outcome == WorkerOutcome.SKIPPED
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_late_result_after_discard_is_dropped(self, tracker, scheduler, template):
        service = FakeGenerationService()
        gate = service.gate("a")
        task = asyncio.create_task(
            make_worker(tracker, service, scheduler).attempt(template.sections[0])
        )
        await asyncio.sleep(0.01)

        tracker.discard()
        gate.set()

        assert await task == WorkerOutcome.SKIPPED
        assert tracker.get_state("a").status == SectionStatus.GENERATING

    @pytest.mark.asyncio
    async def test_progress_ticks_while_generating(self, tracker, scheduler, template):
        service = FakeGenerationService()
        gate = service.gate("a")
        worker = make_worker(tracker, service, scheduler, progress_tick_seconds=0.01)
        task = asyncio.create_task(worker.attempt(template.sections[0]))

        await asyncio.sleep(0.05)
        in_flight = tracker.get_state("a")
        assert in_flight.status == SectionStatus.GENERATING
        assert 10 < in_flight.progress_percent <= 80

        gate.set()
        assert await task == WorkerOutcome.COMPLETED
        assert tracker.get_state("a").progress_percent == 100

    @pytest.mark.asyncio
    async def test_progress_ticks_stop_at_ceiling(self, tracker, scheduler, template):
        service = FakeGenerationService()
        gate = service.gate("a")
        worker = make_worker(tracker, service, scheduler, progress_tick_seconds=0.001)
        task = asyncio.create_task(worker.attempt(template.sections[0]))

        await asyncio.sleep(0.1)
        assert tracker.get_state("a").progress_percent == 80

        gate.set()
        await task
