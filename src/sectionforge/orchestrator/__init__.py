"""
SectionForge - Orchestrator Module

This module coordinates section generation runs:

- SectionOrchestrator: Caller-facing facade for runs
- BatchScheduler: Bounded-concurrency batches and delayed retries
- SectionWorker: Per-section retry state machine
- ProgressTracker: Serialized state updates and history snapshots
- CompletionDetector: Exactly-once finalization and hand-off

Key Workflow:
1. Selection: Validate section ids, apply catalog order
2. Batches: Dispatch each batch concurrently, retry failures after a delay
3. Completion: Classify the run once every section is terminal
4. Hand-off: Assemble completed sections and compile the document

Usage:
    from sectionforge.orchestrator import SectionOrchestrator

    orchestrator = SectionOrchestrator(template, service, history, compiler)
    run_id = await orchestrator.start_run(template.high_priority_section_ids())
    run = await orchestrator.wait_for_run(run_id)
"""

from sectionforge.orchestrator.completion import CompletionDetector, HandOff, classify
from sectionforge.orchestrator.orchestrator import (
    ActiveRun,
    EmptySelectionError,
    OrchestratorError,
    ProgressCallback,
    RunNotFoundError,
    SectionOrchestrator,
    UnknownSectionError,
    new_run_id,
)
from sectionforge.orchestrator.scheduler import BatchScheduler, partition
from sectionforge.orchestrator.tracker import ProgressTracker, TrackerListener
from sectionforge.orchestrator.worker import SectionWorker, WorkerOutcome

__all__ = [
    # Facade
    "SectionOrchestrator",
    "ActiveRun",
    "ProgressCallback",
    "new_run_id",
    # Components
    "BatchScheduler",
    "partition",
    "SectionWorker",
    "WorkerOutcome",
    "ProgressTracker",
    "TrackerListener",
    "CompletionDetector",
    "HandOff",
    "classify",
    # Errors
    "OrchestratorError",
    "RunNotFoundError",
    "UnknownSectionError",
    "EmptySelectionError",
]
