"""
Progress Tracker.

Owns the authoritative GenerationRun for one run. Every mutation goes
through a single asyncio.Lock critical section, is validated against the
section lifecycle, persisted as a full snapshot to the history store and
then announced to listeners outside the lock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from sectionforge.history.base import HistoryStore
from sectionforge.models.base import RunStatus
from sectionforge.models.run import (
    AggregateCounts,
    GenerationRun,
    InvalidTransitionError,
    SectionTaskState,
    utcnow,
)

logger = logging.getLogger(__name__)

# Async listener called with the run and the updated section id
# (None for run-level updates)
TrackerListener = Callable[[GenerationRun, Optional[str]], Awaitable[None]]


class ProgressTracker:
    """Serializes state updates for one run.

    Usage:
        tracker = ProgressTracker(run, history)
        tracker.add_listener(detector.on_update)
        await tracker.transition("summary", status=SectionStatus.GENERATING, progress_percent=10)
    """

    def __init__(self, run: GenerationRun, history: HistoryStore) -> None:
        self._run = run
        self._history = history
        self._lock = asyncio.Lock()
        self._listeners: list[TrackerListener] = []
        self._discarded = False

    @property
    def run(self) -> GenerationRun:
        """The live run. Treat as read-only; mutate through the tracker."""
        return self._run

    @property
    def run_id(self) -> str:
        return self._run.run_id

    @property
    def discarded(self) -> bool:
        return self._discarded

    def snapshot(self) -> GenerationRun:
        """Deep copy of the current run state."""
        return self._run.model_copy(deep=True)

    def aggregate(self) -> AggregateCounts:
        return self._run.aggregate()

    def get_state(self, section_id: str) -> SectionTaskState:
        try:
            return self._run.sections[section_id]
        except KeyError:
            raise KeyError(f"Section {section_id} is not part of run {self.run_id}") from None

    def add_listener(self, listener: TrackerListener) -> None:
        self._listeners.append(listener)

    def discard(self) -> None:
        """Abandon the run; later updates become no-ops."""
        self._discarded = True
        logger.info(f"Run {self.run_id} discarded")

    async def update(self, section_id: str, new_state: SectionTaskState) -> bool:
        """Replace a section's state.

        Returns:
            False if the tracker was discarded and the update ignored

        Raises:
            InvalidTransitionError: If the status change is not allowed
        """
        return await self._apply(section_id, lambda _current: new_state)

    async def transition(self, section_id: str, **changes: Any) -> bool:
        """Apply ``changes`` to the section's current state.

        The read-modify-write happens inside the critical section.
        """
        return await self._apply(section_id, lambda current: current.evolve(**changes))

    async def _apply(
        self,
        section_id: str,
        build: Callable[[SectionTaskState], SectionTaskState],
    ) -> bool:
        if self._discarded:
            logger.debug(f"Ignoring update for {section_id}: run {self.run_id} was discarded")
            return False

        async with self._lock:
            current = self.get_state(section_id)
            new_state = build(current)
            if new_state.section_id != section_id:
                raise ValueError(
                    f"State for {new_state.section_id} cannot replace section {section_id}"
                )
            if not current.status.can_transition_to(new_state.status):
                raise InvalidTransitionError(section_id, current.status, new_state.status)

            self._run.sections[section_id] = new_state
            self._persist()
            if current.status != new_state.status:
                counts = self._run.aggregate()
                logger.debug(
                    f"Run {self.run_id}: {section_id} {current.status.value} -> "
                    f"{new_state.status.value} (pending={counts.pending} "
                    f"generating={counts.generating} completed={counts.completed} "
                    f"failed={counts.failed} total={counts.total})"
                )

        await self._notify(section_id)
        return True

    async def report_progress(self, percent: int, phase: str) -> None:
        """Record batch-level progress.

        Ignored once the run has settled; the final batch report may
        arrive after the completion detector set 100.
        """
        if self._discarded:
            return
        async with self._lock:
            if self._run.finalized and self._run.status != RunStatus.GENERATING:
                return
            self._run.progress_percent = max(0, min(100, percent))
            self._run.phase = phase
            self._persist()
        await self._notify(None)

    async def set_run_status(
        self,
        status: RunStatus,
        *,
        is_partially_complete: bool | None = None,
        error: str | None = None,
        progress_percent: int | None = None,
        phase: str | None = None,
    ) -> None:
        """Set the aggregate run status; ``error`` replaces any previous one."""
        if self._discarded:
            return
        async with self._lock:
            self._run.status = status
            self._run.error = error
            if is_partially_complete is not None:
                self._run.is_partially_complete = is_partially_complete
            if progress_percent is not None:
                self._run.progress_percent = max(0, min(100, progress_percent))
            if phase is not None:
                self._run.phase = phase
            self._persist()
        await self._notify(None)

    async def reopen(self, phase: str) -> None:
        """Put the run back into generation for a retry or resume.

        Any earlier compile is dropped, the artifact no longer reflects
        the sections about to be regenerated.
        """
        if self._discarded:
            return
        async with self._lock:
            self._run.status = RunStatus.GENERATING
            self._run.error = None
            self._run.phase = phase
            self._run.compiled = False
            self._run.compiled_at = None
            self._run.artifact_path = None
            self._persist()
        await self._notify(None)

    async def try_finalize(self) -> bool:
        """Test-and-set the one-shot finalized flag.

        Returns:
            True for exactly one caller per run
        """
        async with self._lock:
            if self._run.finalized or self._discarded:
                return False
            self._run.finalized = True
            self._run.finalized_at = utcnow()
            self._persist()
            return True

    async def mark_compiled(self, artifact_path: str) -> None:
        """Record a successful compile.

        A finalized run in ``generated`` status moves to ``compiled``.
        """
        async with self._lock:
            self._run.compiled = True
            self._run.compiled_at = utcnow()
            self._run.artifact_path = artifact_path
            if self._run.finalized and self._run.status == RunStatus.GENERATED:
                self._run.status = RunStatus.COMPILED
            self._persist()
        await self._notify(None)

    def _persist(self) -> None:
        """Snapshot the run to history.

        A failed write does not roll back the in-memory state; the next
        successful snapshot carries the full run.
        """
        self._run.updated_at = utcnow()
        try:
            self._history.snapshot(self._run.run_id, self._run)
        except Exception:
            logger.exception(f"Failed to snapshot run {self.run_id} to history")

    async def _notify(self, section_id: str | None) -> None:
        for listener in list(self._listeners):
            try:
                await listener(self._run, section_id)
            except Exception:
                # Listener errors never affect generation
                logger.exception(f"Progress listener failed for run {self.run_id}")
