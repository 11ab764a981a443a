"""Tests for run state models and the section lifecycle."""

import pytest

from sectionforge.models import (
    AggregateCounts,
    GenerationRun,
    RunStatus,
    RunStatusReport,
    SectionStatus,
    SectionTaskState,
    safe_run_id,
)


class TestSectionStatus:
    """Tests for the section lifecycle ordering."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (SectionStatus.PENDING, SectionStatus.GENERATING),
            (SectionStatus.GENERATING, SectionStatus.COMPLETED),
            (SectionStatus.GENERATING, SectionStatus.FAILED),
            (SectionStatus.GENERATING, SectionStatus.PENDING),
            (SectionStatus.FAILED, SectionStatus.PENDING),
            (SectionStatus.GENERATING, SectionStatus.GENERATING),
        ],
    )
    def test_allowed(self, current, target):
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (SectionStatus.PENDING, SectionStatus.COMPLETED),
            (SectionStatus.PENDING, SectionStatus.FAILED),
            (SectionStatus.COMPLETED, SectionStatus.PENDING),
            (SectionStatus.COMPLETED, SectionStatus.GENERATING),
            (SectionStatus.COMPLETED, SectionStatus.COMPLETED),
            (SectionStatus.FAILED, SectionStatus.COMPLETED),
        ],
    )
    def test_forbidden(self, current, target):
        assert not current.can_transition_to(target)

    def test_terminal(self):
        assert SectionStatus.COMPLETED.is_terminal
        assert SectionStatus.FAILED.is_terminal
        assert not SectionStatus.PENDING.is_terminal


class TestSectionTaskState:
    def test_defaults(self):
        state = SectionTaskState(section_id="a")
        assert state.status == SectionStatus.PENDING
        assert state.progress_percent == 0
        assert state.retry_count == 0

    def test_evolve_returns_copy(self):
        state = SectionTaskState(section_id="a")
        evolved = state.evolve(status=SectionStatus.GENERATING, progress_percent=10)

        assert evolved.status == SectionStatus.GENERATING
        assert state.status == SectionStatus.PENDING
        assert evolved.updated_at >= state.updated_at

    def test_progress_bounds(self):
        with pytest.raises(ValueError):
            SectionTaskState(section_id="a", progress_percent=101)


class TestGenerationRun:
    """Tests for GenerationRun."""

    @pytest.fixture
    def run(self):
        return GenerationRun.create("run_1", "sample", ["a", "b", "c", "d"], {"document_name": "X"})

    def test_create_all_pending(self, run):
        assert run.status == RunStatus.PENDING
        assert list(run.sections) == ["a", "b", "c", "d"]
        assert all(s.status == SectionStatus.PENDING for s in run.sections.values())
        assert run.finalized is False

    def test_aggregate_sums_to_total(self, run):
        run.sections["a"] = run.sections["a"].evolve(
            status=SectionStatus.GENERATING, progress_percent=50
        )
        run.sections["b"] = run.sections["b"].evolve(
            status=SectionStatus.COMPLETED, progress_percent=100
        )
        run.sections["c"] = run.sections["c"].evolve(status=SectionStatus.FAILED)

        counts = run.aggregate()
        assert (counts.pending, counts.generating, counts.completed, counts.failed) == (1, 1, 1, 1)
        assert counts.pending + counts.generating + counts.completed + counts.failed == counts.total
        assert counts.percent == 37.5
        assert counts.done == 2
        assert not counts.is_settled

    def test_settled(self):
        assert AggregateCounts(completed=2, failed=1, total=3).is_settled
        assert not AggregateCounts(total=0).is_settled

    def test_ids_with_status_keeps_catalog_order(self, run):
        for sid in ("d", "b"):
            run.sections[sid] = run.sections[sid].evolve(status=SectionStatus.GENERATING)
        assert run.ids_with_status(SectionStatus.GENERATING) == ["b", "d"]

    def test_json_round_trip(self, run):
        run.sections["a"] = run.sections["a"].evolve(
            status=SectionStatus.COMPLETED,
            content="<p>done</p>",
            structured_data={"title": "A"},
        )
        restored = GenerationRun.model_validate_json(run.model_dump_json())
        assert restored == run


class TestRunStatusReport:
    def test_from_run(self):
        run = GenerationRun.create("run_1", "sample", ["b", "a"])
        run.sections["a"] = run.sections["a"].evolve(status=SectionStatus.FAILED, error="boom")

        report = RunStatusReport.from_run(run)
        assert [s.section_id for s in report.sections] == ["b", "a"]
        assert report.failed_section_ids == ["a"]
        assert report.aggregate.failed == 1


class TestSafeRunId:
    def test_generated_id_unchanged(self):
        assert safe_run_id("run_20240101_ab12cd") == "run_20240101_ab12cd"

    def test_path_separators_replaced(self):
        assert safe_run_id("../etc/passwd") == "etc_passwd"

    def test_nothing_left(self):
        with pytest.raises(ValueError):
            safe_run_id("../")
