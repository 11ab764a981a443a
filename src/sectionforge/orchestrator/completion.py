"""
Completion Detector.

Runs after every section update. When every selected section reached a
terminal state it classifies the run and hands the completed sections to
report assembly, exactly once per run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from sectionforge.assembly.report import completed_states
from sectionforge.models.base import RunStatus
from sectionforge.models.run import AggregateCounts, GenerationRun, SectionTaskState
from sectionforge.orchestrator.tracker import ProgressTracker

logger = logging.getLogger(__name__)

# Receives a snapshot of the finalized run and its completed sections in
# catalog order
HandOff = Callable[[GenerationRun, list[SectionTaskState]], Awaitable[None]]


def classify(counts: AggregateCounts) -> tuple[RunStatus, bool, Optional[str]]:
    """Map settled counts to (run status, partially complete, error)."""
    if counts.completed == counts.total:
        return RunStatus.GENERATED, False, None
    if counts.completed > 0:
        return RunStatus.GENERATED, True, None
    return RunStatus.FAILED, False, f"All {counts.total} sections failed to generate"


class CompletionDetector:
    """Fires the hand-off once all sections of a run have settled.

    Args:
        tracker: Tracker of the run
        hand_off: Called once with the completed sections
    """

    def __init__(self, tracker: ProgressTracker, hand_off: HandOff | None = None) -> None:
        self._tracker = tracker
        self._hand_off = hand_off
        self._lock = asyncio.Lock()
        self._fired = 0

    @property
    def fired(self) -> int:
        """Number of hand-offs performed (0 or 1)."""
        return self._fired

    async def on_update(self, run: GenerationRun, section_id: str | None) -> None:
        """Tracker listener; run-level updates don't change section counts."""
        if section_id is None:
            return
        await self.check()

    async def check(self) -> bool:
        """Finalize the run if every section is terminal.

        Returns:
            True only for the call that finalized the run
        """
        async with self._lock:
            counts = self._tracker.aggregate()
            if not counts.is_settled:
                return False

            if not await self._tracker.try_finalize():
                await self._reclassify(counts)
                return False

            status, partial, error = classify(counts)
            await self._tracker.set_run_status(
                status,
                is_partially_complete=partial,
                error=error,
                progress_percent=100,
                phase=self._phase(counts),
            )
            logger.info(
                f"Run {self._tracker.run_id} finalized: {status.value} "
                f"({counts.completed}/{counts.total} completed, {counts.failed} failed)"
            )

            self._fired += 1
            if self._hand_off is not None:
                run = self._tracker.snapshot()
                await self._hand_off(run, completed_states(run))
            return True

    async def _reclassify(self, counts: AggregateCounts) -> None:
        """Settle a finalized run again after a manual retry."""
        run = self._tracker.run
        if not run.finalized or run.status != RunStatus.GENERATING:
            return
        status, partial, error = classify(counts)
        await self._tracker.set_run_status(
            status,
            is_partially_complete=partial,
            error=error,
            progress_percent=100,
            phase=self._phase(counts),
        )
        logger.info(
            f"Run {self._tracker.run_id} settled again after retry: {status.value} "
            f"({counts.completed}/{counts.total} completed)"
        )

    @staticmethod
    def _phase(counts: AggregateCounts) -> str:
        if counts.completed == 0:
            return f"All {counts.total} sections failed to generate"
        return f"Generated {counts.completed}/{counts.total} sections"
