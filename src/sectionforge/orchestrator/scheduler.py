"""
Batch Scheduler.

Partitions the selected sections into consecutive batches (catalog
order) and dispatches each batch concurrently. A batch only waits for
the immediate outcome of its workers; delayed retries are re-enqueued
as independent timer tasks and run outside batch boundaries.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from sectionforge.models.sections import SectionDefinition
from sectionforge.orchestrator.tracker import ProgressTracker
from sectionforge.orchestrator.worker import SectionWorker, WorkerOutcome

logger = logging.getLogger(__name__)


def partition(
    sections: Sequence[SectionDefinition],
    batch_size: int,
) -> list[list[SectionDefinition]]:
    """Split sections into consecutive batches of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    return [list(sections[i : i + batch_size]) for i in range(0, len(sections), batch_size)]


class BatchScheduler:
    """Dispatches sections of one run in batches.

    Args:
        tracker: Tracker of the run
        batch_size: Sections dispatched concurrently per batch
        progress_ceiling: Run progress reported once every batch was attempted
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        batch_size: int = 3,
        progress_ceiling: int = 90,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self._tracker = tracker
        self._batch_size = batch_size
        self._progress_ceiling = progress_ceiling
        self._worker: SectionWorker | None = None
        self._tasks: set[asyncio.Task] = set()
        self._retry_tasks: set[asyncio.Task] = set()

    def bind(self, worker: SectionWorker) -> None:
        """Attach the worker that executes dispatched sections."""
        self._worker = worker

    @property
    def worker(self) -> SectionWorker:
        if self._worker is None:
            raise RuntimeError("No worker bound to scheduler")
        return self._worker

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def pending_retries(self) -> int:
        """Retry timers in flight."""
        return sum(1 for task in self._retry_tasks if not task.done())

    @property
    def is_idle(self) -> bool:
        return not any(not task.done() for task in self._tasks)

    def start(self, sections: Sequence[SectionDefinition]) -> asyncio.Task:
        """Run the batch loop in the background."""
        task = asyncio.create_task(
            self.run(sections),
            name=f"batches-{self._tracker.run_id}",
        )
        self._track(task)
        return task

    async def run(self, sections: Sequence[SectionDefinition]) -> list[WorkerOutcome]:
        """Dispatch every batch in order.

        Returns:
            Immediate outcomes in section order
        """
        worker = self.worker
        batches = partition(sections, self._batch_size)
        total = len(sections)
        # A retry or resume dispatches a subset; count the rest as done
        run_total = max(total, len(self._tracker.run.selected_section_ids))
        already_done = run_total - total
        attempted = 0
        outcomes: list[WorkerOutcome] = []

        logger.info(
            f"Run {self._tracker.run_id}: {total} sections in {len(batches)} batches "
            f"of up to {self._batch_size}"
        )

        for index, batch in enumerate(batches, start=1):
            if self._tracker.discarded:
                logger.info(f"Run {self._tracker.run_id} discarded, stopping at batch {index}")
                break

            logger.info(
                f"Batch {index}/{len(batches)}: {', '.join(s.id for s in batch)}"
            )
            results = await asyncio.gather(
                *(worker.attempt(section) for section in batch),
                return_exceptions=True,
            )
            for section, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error(
                        f"Worker crashed on section {section.id}: {result!r}",
                        exc_info=result,
                    )
                    outcomes.append(WorkerOutcome.FAILED)
                else:
                    outcomes.append(result)

            attempted += len(batch)
            done = already_done + attempted
            await self._tracker.report_progress(
                round(done / run_total * self._progress_ceiling),
                f"Generated {done}/{run_total} sections...",
            )

        return outcomes

    def schedule_retry(self, section: SectionDefinition, delay: float) -> asyncio.Task:
        """Re-dispatch ``section`` after ``delay`` seconds."""
        task = asyncio.create_task(
            self._delayed_attempt(section, delay),
            name=f"retry-{self._tracker.run_id}-{section.id}",
        )
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)
        self._track(task)
        return task

    async def _delayed_attempt(self, section: SectionDefinition, delay: float) -> WorkerOutcome:
        await asyncio.sleep(delay)
        if self._tracker.discarded:
            return WorkerOutcome.SKIPPED
        logger.info(f"Retrying section {section.id}")
        return await self.worker.attempt(section)

    async def wait_idle(self) -> None:
        """Wait until batches and all retries (including nested ones) drain."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Scheduler task {task.get_name()} failed: {error!r}", exc_info=error)
