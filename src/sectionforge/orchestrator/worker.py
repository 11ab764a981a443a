"""
Section Worker.

Runs one generation attempt for one section and applies the retry state
machine to its outcome:

    pending -> generating -> completed
                          -> pending (retry scheduled, budget left)
                          -> failed  (budget exhausted)

Every transition is reported to the tracker before ``attempt`` returns.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from sectionforge.models.base import SectionStatus
from sectionforge.models.sections import SectionDefinition
from sectionforge.orchestrator.tracker import ProgressTracker
from sectionforge.service.base import ContentGenerationService, GenerationResult, ServiceError

if TYPE_CHECKING:
    from sectionforge.orchestrator.scheduler import BatchScheduler

logger = logging.getLogger(__name__)

START_PROGRESS = 10
TICK_STEP = 10
TICK_CEILING = 80


class WorkerOutcome(str, Enum):
    """Immediate outcome of one attempt."""

    COMPLETED = "completed"
    FAILED = "failed"
    RETRY_SCHEDULED = "retry_scheduled"
    SKIPPED = "skipped"


class SectionWorker:
    """Generates sections for one run.

    Args:
        tracker: Tracker of the run
        service: Content generation service
        scheduler: Scheduler that receives delayed retries
        max_retries: Automatic retries per section
        retry_delay_seconds: Delay before a retry is dispatched
        progress_tick_seconds: In-flight progress tick interval, 0 disables
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        service: ContentGenerationService,
        scheduler: BatchScheduler,
        max_retries: int = 2,
        retry_delay_seconds: float = 5.0,
        progress_tick_seconds: float = 0.0,
    ) -> None:
        self._tracker = tracker
        self._service = service
        self._scheduler = scheduler
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._tick_seconds = progress_tick_seconds

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def attempt(self, section: SectionDefinition) -> WorkerOutcome:
        """Run one attempt for ``section``."""
        if self._tracker.discarded:
            return WorkerOutcome.SKIPPED

        await self._tracker.transition(
            section.id,
            status=SectionStatus.GENERATING,
            progress_percent=START_PROGRESS,
        )
        logger.debug(f"Generating section {section.id}")

        result: GenerationResult | None = None
        failure: Exception | None = None
        ticker = self._start_ticker(section.id)
        try:
            result = await self._service.generate(section, self._context())
        except ServiceError as e:
            failure = e
        except Exception as e:
            # Unexpected collaborator errors consume the same retry budget
            logger.exception(f"Unexpected error generating section {section.id}")
            failure = e
        finally:
            await self._stop_ticker(ticker)

        if self._tracker.discarded:
            logger.debug(f"Dropping late result for section {section.id}")
            return WorkerOutcome.SKIPPED

        if failure is None:
            return await self._complete(section, result)
        return await self._fail(section, failure)

    def _context(self) -> dict[str, Any]:
        return dict(self._tracker.run.context)

    async def _complete(
        self,
        section: SectionDefinition,
        result: GenerationResult,
    ) -> WorkerOutcome:
        structured = result.structured_data
        title = None
        if structured:
            candidate = structured.get("title")
            if isinstance(candidate, str) and candidate.strip():
                title = candidate.strip()

        await self._tracker.transition(
            section.id,
            status=SectionStatus.COMPLETED,
            progress_percent=100,
            content=result.display_payload,
            structured_data=structured,
            title=title,
            error=None,
        )
        logger.info(
            f"Section {section.id} completed"
            f"{' (display-only)' if structured is None else ''}"
        )
        return WorkerOutcome.COMPLETED

    async def _fail(self, section: SectionDefinition, failure: Exception) -> WorkerOutcome:
        state = self._tracker.get_state(section.id)
        message = str(failure) or type(failure).__name__

        if state.retry_count < self._max_retries:
            retry_count = state.retry_count + 1
            await self._tracker.transition(
                section.id,
                status=SectionStatus.PENDING,
                progress_percent=0,
                retry_count=retry_count,
                error=message,
            )
            logger.warning(
                f"Section {section.id} failed, retry {retry_count}/{self._max_retries} "
                f"in {self._retry_delay}s: {message}"
            )
            self._scheduler.schedule_retry(section, self._retry_delay)
            return WorkerOutcome.RETRY_SCHEDULED

        await self._tracker.transition(
            section.id,
            status=SectionStatus.FAILED,
            progress_percent=0,
            error=message,
        )
        logger.warning(
            f"Section {section.id} failed after {state.retry_count} retries: {message}"
        )
        return WorkerOutcome.FAILED

    def _start_ticker(self, section_id: str) -> asyncio.Task | None:
        if self._tick_seconds <= 0:
            return None
        return asyncio.create_task(
            self._tick_progress(section_id),
            name=f"progress-{self._tracker.run_id}-{section_id}",
        )

    async def _tick_progress(self, section_id: str) -> None:
        percent = START_PROGRESS
        while percent < TICK_CEILING:
            await asyncio.sleep(self._tick_seconds)
            percent = min(percent + TICK_STEP, TICK_CEILING)
            await self._tracker.transition(section_id, progress_percent=percent)

    async def _stop_ticker(self, ticker: asyncio.Task | None) -> None:
        if ticker is None:
            return
        if not ticker.done():
            ticker.cancel()
        try:
            await ticker
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"Progress ticker failed: {e}")
