"""
Section Orchestrator.

Caller-facing entry point that coordinates a generation run:
- Validates the selection against the template catalog
- Wires tracker, scheduler, worker and completion detector per run
- Runs generation in the background and reports status
- Manual retry of failed sections and resume of interrupted runs
- Report assembly and compilation
"""

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from sectionforge.assembly.compiler import CompilationError, DocumentCompiler
from sectionforge.assembly.report import assemble_document
from sectionforge.config.models import GenerationConfig
from sectionforge.history.base import HistoryStore
from sectionforge.models.base import RunStatus, SectionStatus
from sectionforge.models.document import AssembledDocument, CompiledArtifact
from sectionforge.models.run import GenerationRun, RunStatusReport, SectionTaskState, utcnow
from sectionforge.models.sections import DocumentTemplate
from sectionforge.orchestrator.completion import CompletionDetector
from sectionforge.orchestrator.scheduler import BatchScheduler
from sectionforge.orchestrator.tracker import ProgressTracker
from sectionforge.orchestrator.worker import SectionWorker
from sectionforge.service.base import ContentGenerationService

logger = logging.getLogger(__name__)

# Callback type for progress updates
ProgressCallback = Callable[[RunStatusReport], None]


@dataclass
class ActiveRun:
    """Per-run collaborators kept while a run is live in this process."""

    tracker: ProgressTracker
    scheduler: BatchScheduler
    worker: SectionWorker
    detector: CompletionDetector

    @property
    def run(self) -> GenerationRun:
        return self.tracker.run


def new_run_id() -> str:
    """Sortable, unique run identifier."""
    return f"run_{utcnow():%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:6]}"


class SectionOrchestrator:
    """Coordinates section generation runs for one document template.

    Usage:
        orchestrator = SectionOrchestrator(template, service, history, compiler)
        run_id = await orchestrator.start_run(["executive-summary", "roi-analysis"])
        run = await orchestrator.wait_for_run(run_id)
        artifact = await orchestrator.compile(run_id)
    """

    def __init__(
        self,
        template: DocumentTemplate,
        service: ContentGenerationService,
        history: HistoryStore,
        compiler: DocumentCompiler | None = None,
        config: GenerationConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            template: Catalog the runs select sections from
            service: Content generation service
            history: Store receiving a snapshot after every update
            compiler: Document compiler, required for compile()
            config: Generation settings
        """
        self._template = template
        self._service = service
        self._history = history
        self._compiler = compiler
        self._config = config or GenerationConfig()
        self._active: dict[str, ActiveRun] = {}
        self._progress_callbacks: list[ProgressCallback] = []
        self._documents: dict[str, AssembledDocument] = {}

    @property
    def template(self) -> DocumentTemplate:
        return self._template

    @property
    def config(self) -> GenerationConfig:
        return self._config

    @property
    def service(self) -> ContentGenerationService:
        return self._service

    @property
    def active_run_ids(self) -> list[str]:
        return list(self._active)

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register a callback for every update of every run."""
        self._progress_callbacks.append(callback)

    async def start_run(
        self,
        selected_section_ids: Sequence[str],
        context: dict[str, Any] | None = None,
    ) -> str:
        """Start generating the selected sections in the background.

        Args:
            selected_section_ids: Sections to generate; duplicates are
                dropped and catalog order is applied
            context: Run context passed to the generation service

        Returns:
            The new run id

        Raises:
            EmptySelectionError: If nothing was selected
            UnknownSectionError: If an id is not in the template
        """
        section_ids = self._validate_selection(selected_section_ids)
        run_context = {"document_name": self._template.name, **(context or {})}

        run = GenerationRun.create(new_run_id(), self._template.id, section_ids, run_context)
        run.status = RunStatus.GENERATING
        # Nothing is registered or dispatched if the first write fails
        self._history.snapshot(run.run_id, run)
        active = self._activate(run)

        logger.info(
            f"Started run {run.run_id}: {len(section_ids)} sections of template {self._template.id}"
        )
        active.scheduler.start(self._template.select(section_ids))
        return run.run_id

    def get_run_status(self, run_id: str) -> RunStatusReport:
        """Current status of a run, from memory or the history store.

        Raises:
            RunNotFoundError: If the run is unknown
        """
        active = self._active.get(run_id)
        if active is not None:
            return RunStatusReport.from_run(active.run)

        run = self._history.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return RunStatusReport.from_run(run)

    async def wait_for_run(self, run_id: str) -> GenerationRun:
        """Wait until the run's batches and retries have drained.

        Returns:
            Snapshot of the run
        """
        active = self._active.get(run_id)
        if active is None:
            run = self._history.get(run_id)
            if run is None:
                raise RunNotFoundError(run_id)
            return run

        await active.scheduler.wait_idle()
        return active.tracker.snapshot()

    async def retry_failed(self, run_id: str) -> list[str]:
        """Re-dispatch every failed section of a run.

        Each retried section gets a fresh automatic retry budget. Runs
        that are not active are reloaded from the history store.

        Returns:
            Ids of the re-dispatched sections, catalog order
        """
        active = self._active.get(run_id) or self._reload(run_id)
        failed_ids = active.run.ids_with_status(SectionStatus.FAILED)
        if not failed_ids:
            logger.info(f"Run {run_id} has no failed sections to retry")
            return []

        for section_id in failed_ids:
            await active.tracker.transition(
                section_id,
                status=SectionStatus.PENDING,
                progress_percent=0,
                retry_count=0,
                error=None,
            )
        await active.tracker.reopen(f"Retrying {len(failed_ids)} sections...")

        logger.info(f"Retrying {len(failed_ids)} failed sections of run {run_id}")
        active.scheduler.start(self._template.select(failed_ids))
        return failed_ids

    async def resume_run(self, run_id: str) -> list[str]:
        """Continue an interrupted run from its last snapshot.

        Pending sections and sections left in ``generating`` by a crashed
        process are dispatched again.

        Returns:
            Ids of the re-dispatched sections, catalog order

        Raises:
            OrchestratorError: If the run is still in progress here
        """
        active = self._active.get(run_id)
        if active is not None and not active.scheduler.is_idle:
            raise OrchestratorError(f"Run {run_id} is still in progress")
        if active is None:
            active = self._reload(run_id)

        for section_id in active.run.ids_with_status(SectionStatus.GENERATING):
            await active.tracker.transition(
                section_id,
                status=SectionStatus.PENDING,
                progress_percent=0,
            )

        pending_ids = active.run.ids_with_status(SectionStatus.PENDING)
        if not pending_ids:
            # Settled before the interruption; finalize if that never happened
            await active.detector.check()
            return []

        await active.tracker.reopen(f"Resuming {len(pending_ids)} sections...")
        logger.info(f"Resuming run {run_id}: {len(pending_ids)} sections")
        active.scheduler.start(self._template.select(pending_ids))
        return pending_ids

    def discard_run(self, run_id: str) -> None:
        """Abandon a run; results arriving later are ignored."""
        active = self._active.pop(run_id, None)
        if active is None:
            if self._history.get(run_id) is None:
                raise RunNotFoundError(run_id)
            return
        active.tracker.discard()

    def assemble(self, run_id: str) -> AssembledDocument:
        """Assemble the current document of a run (completed sections only)."""
        return assemble_document(self._load_run(run_id), self._template)

    def get_document(self, run_id: str) -> AssembledDocument | None:
        """Document assembled when the run was finalized, if any."""
        return self._documents.get(run_id)

    async def compile(self, run_id: str) -> CompiledArtifact:
        """Compile the completed sections of a run.

        Can be called repeatedly and before the run is finalized. The
        run's generation status is never changed by a failure.

        Raises:
            RunNotFoundError: If the run is unknown
            CompilationError: If there is nothing to compile or the
                compiler fails
        """
        if self._compiler is None:
            raise CompilationError("No document compiler configured", run_id)

        run = self._load_run(run_id)
        document = assemble_document(run, self._template)
        if not document.ordered_sections:
            raise CompilationError(f"Run {run_id} has no completed sections to compile", run_id)

        try:
            artifact = self._compiler.compile(document, run_id)
        except CompilationError:
            logger.error(f"Compilation failed for run {run_id}")
            raise
        except Exception as e:
            logger.exception(f"Compiler crashed for run {run_id}")
            raise CompilationError(f"Compiler failed for run {run_id}: {e}", run_id) from e

        active = self._active.get(run_id)
        tracker = active.tracker if active is not None else ProgressTracker(run, self._history)
        await tracker.mark_compiled(str(artifact.path))
        return artifact

    def _validate_selection(self, selected_section_ids: Sequence[str]) -> list[str]:
        if isinstance(selected_section_ids, str):
            selected_section_ids = [selected_section_ids]
        if not selected_section_ids:
            raise EmptySelectionError("No sections selected")

        known = set(self._template.section_ids)
        unknown = [sid for sid in dict.fromkeys(selected_section_ids) if sid not in known]
        if unknown:
            raise UnknownSectionError(unknown, self._template.id)

        return [s.id for s in self._template.select(list(selected_section_ids))]

    def _load_run(self, run_id: str) -> GenerationRun:
        active = self._active.get(run_id)
        if active is not None:
            return active.run
        run = self._history.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def _reload(self, run_id: str) -> ActiveRun:
        run = self._history.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        if run.template_id != self._template.id:
            raise OrchestratorError(
                f"Run {run_id} belongs to template {run.template_id}, not {self._template.id}"
            )
        logger.info(f"Reloaded run {run_id} from history")
        return self._activate(run)

    def _activate(self, run: GenerationRun) -> ActiveRun:
        tracker = ProgressTracker(run, self._history)
        scheduler = BatchScheduler(
            tracker,
            batch_size=self._config.batch_size,
            progress_ceiling=self._config.progress_ceiling,
        )
        worker = SectionWorker(
            tracker,
            self._service,
            scheduler,
            max_retries=self._config.max_retries,
            retry_delay_seconds=self._config.retry_delay_seconds,
            progress_tick_seconds=self._config.progress_tick_seconds,
        )
        scheduler.bind(worker)
        detector = CompletionDetector(tracker, hand_off=self._hand_off)

        tracker.add_listener(detector.on_update)
        tracker.add_listener(self._notify_progress)

        active = ActiveRun(tracker=tracker, scheduler=scheduler, worker=worker, detector=detector)
        self._active[run.run_id] = active
        return active

    async def _hand_off(self, run: GenerationRun, completed: list[SectionTaskState]) -> None:
        """Assemble the finalized run and optionally compile it."""
        document = assemble_document(run, self._template)
        self._documents[run.run_id] = document
        logger.info(
            f"Run {run.run_id} assembled: {len(completed)} sections"
            f"{' (partial)' if document.is_partially_complete else ''}"
        )

        if not self._config.auto_compile or self._compiler is None or not completed:
            return
        try:
            await self.compile(run.run_id)
        except CompilationError as e:
            logger.error(f"Automatic compilation failed for run {run.run_id}: {e}")

    async def _notify_progress(self, run: GenerationRun, section_id: str | None) -> None:
        """Notify all progress callbacks."""
        if not self._progress_callbacks:
            return
        report = RunStatusReport.from_run(run)
        for callback in self._progress_callbacks:
            try:
                callback(report)
            except Exception:
                logger.exception("Progress callback failed")


class OrchestratorError(Exception):
    """Raised when orchestrator encounters an error."""

    pass


class RunNotFoundError(OrchestratorError):
    """Raised when a run id is neither active nor in history."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run not found: {run_id}")
        self.run_id = run_id


class UnknownSectionError(OrchestratorError):
    """Raised when a selection contains ids that are not in the template."""

    def __init__(self, section_ids: list[str], template_id: str) -> None:
        super().__init__(
            f"Unknown sections for template {template_id}: {', '.join(section_ids)}"
        )
        self.section_ids = section_ids
        self.template_id = template_id


class EmptySelectionError(OrchestratorError):
    """Raised when a run is started without any section."""

    pass
