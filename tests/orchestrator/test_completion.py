"""Tests for the completion detector."""

import asyncio

import pytest

from sectionforge.models import AggregateCounts, GenerationRun, RunStatus, SectionStatus
from sectionforge.orchestrator import CompletionDetector, ProgressTracker, classify


class HandOffRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, run, completed):
        self.calls.append((run, [s.section_id for s in completed]))


@pytest.fixture
def tracker(memory_history):
    run = GenerationRun.create("run_1", "sample", ["a", "b", "c", "d"])
    run.status = RunStatus.GENERATING
    return ProgressTracker(run, memory_history)


@pytest.fixture
def hand_off():
    return HandOffRecorder()


@pytest.fixture
def detector(tracker, hand_off):
    detector = CompletionDetector(tracker, hand_off=hand_off)
    tracker.add_listener(detector.on_update)
    return detector


async def settle(tracker: ProgressTracker, section_id: str, status: SectionStatus) -> None:
    await tracker.transition(section_id, status=SectionStatus.GENERATING)
    if status == SectionStatus.COMPLETED:
        await tracker.transition(section_id, status=status, progress_percent=100, content="x")
    else:
        await tracker.transition(section_id, status=status, error="boom")


class TestClassify:
    def test_all_completed(self):
        assert classify(AggregateCounts(completed=3, total=3)) == (RunStatus.GENERATED, False, None)

    def test_partial(self):
        assert classify(AggregateCounts(completed=3, failed=2, total=5)) == (
            RunStatus.GENERATED,
            True,
            None,
        )

    def test_none_completed(self):
        assert classify(AggregateCounts(failed=4, total=4)) == (
            RunStatus.FAILED,
            False,
            "All 4 sections failed to generate",
        )


class TestCompletionDetector:
    """Tests for CompletionDetector."""

    @pytest.mark.asyncio
    async def test_not_fired_while_sections_pending(self, tracker, detector, hand_off):
        await settle(tracker, "a", SectionStatus.COMPLETED)
        await settle(tracker, "b", SectionStatus.FAILED)

        assert detector.fired == 0
        assert hand_off.calls == []
        assert tracker.run.finalized is False

    @pytest.mark.asyncio
    async def test_partial_completion(self, tracker, detector, hand_off):
        for sid, status in [
            ("d", SectionStatus.COMPLETED),
            ("a", SectionStatus.COMPLETED),
            ("b", SectionStatus.FAILED),
            ("c", SectionStatus.COMPLETED),
        ]:
            await settle(tracker, sid, status)

        run = tracker.run
        assert detector.fired == 1
        assert run.status == RunStatus.GENERATED
        assert run.is_partially_complete is True
        assert run.progress_percent == 100
        assert run.phase == "Generated 3/4 sections"
        assert run.error is None

        snapshot, completed = hand_off.calls[0]
        assert completed == ["a", "c", "d"]
        assert snapshot.finalized is True

    @pytest.mark.asyncio
    async def test_all_failed(self, tracker, detector, hand_off):
        for sid in ("a", "b", "c", "d"):
            await settle(tracker, sid, SectionStatus.FAILED)

        assert tracker.run.status == RunStatus.FAILED
        assert tracker.run.error == "All 4 sections failed to generate"
        assert hand_off.calls[0][1] == []

    @pytest.mark.asyncio
    async def test_fires_exactly_once_under_concurrency(self, tracker, detector, hand_off):
        await asyncio.gather(
            *(settle(tracker, sid, SectionStatus.COMPLETED) for sid in ("a", "b", "c", "d"))
        )
        # Extra checks after settling do nothing
        await asyncio.gather(*(detector.check() for _ in range(5)))

        assert detector.fired == 1
        assert len(hand_off.calls) == 1
        assert tracker.run.is_partially_complete is False

    @pytest.mark.asyncio
    async def test_check_returns_true_once(self, tracker, hand_off):
        for sid in ("a", "b", "c", "d"):
            await settle(tracker, sid, SectionStatus.COMPLETED)
        detector = CompletionDetector(tracker, hand_off=hand_off)

        results = await asyncio.gather(*(detector.check() for _ in range(3)))
        assert results.count(True) == 1

    @pytest.mark.asyncio
    async def test_run_level_updates_ignored(self, tracker, detector):
        for sid in ("a", "b", "c", "d"):
            await settle(tracker, sid, SectionStatus.COMPLETED)
        fired = detector.fired

        await tracker.report_progress(90, "Generated 4/4 sections...")
        assert detector.fired == fired

    @pytest.mark.asyncio
    async def test_reclassified_after_manual_retry(self, tracker, detector, hand_off):
        for sid, status in [
            ("a", SectionStatus.COMPLETED),
            ("b", SectionStatus.FAILED),
            ("c", SectionStatus.COMPLETED),
            ("d", SectionStatus.COMPLETED),
        ]:
            await settle(tracker, sid, status)
        assert tracker.run.is_partially_complete is True

        # Manual retry of b succeeds
        await tracker.transition("b", status=SectionStatus.PENDING, retry_count=0, error=None)
        await tracker.set_run_status(RunStatus.GENERATING, phase="Retrying 1 sections...")
        await settle(tracker, "b", SectionStatus.COMPLETED)

        assert tracker.run.status == RunStatus.GENERATED
        assert tracker.run.is_partially_complete is False
        assert tracker.run.phase == "Generated 4/4 sections"
        # The hand-off stays one-shot
        assert detector.fired == 1
        assert len(hand_off.calls) == 1

    @pytest.mark.asyncio
    async def test_no_hand_off_after_discard(self, tracker, detector, hand_off):
        for sid in ("a", "b", "c"):
            await settle(tracker, sid, SectionStatus.COMPLETED)
        await tracker.transition("d", status=SectionStatus.GENERATING)
        tracker.discard()

        await tracker.transition("d", status=SectionStatus.COMPLETED)
        assert await detector.check() is False
        assert hand_off.calls == []
