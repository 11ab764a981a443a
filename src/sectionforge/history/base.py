"""
History store interface.

A history store keeps the latest full snapshot of every run
(last write wins). The orchestrator receives a store instance; there is
no global store.
"""

from abc import ABC, abstractmethod

from sectionforge.models.run import GenerationRun


class HistoryStore(ABC):
    """Persists run snapshots keyed by run id."""

    @abstractmethod
    def snapshot(self, run_id: str, run: GenerationRun) -> None:
        """Store the full state of ``run``, replacing any previous snapshot."""

    @abstractmethod
    def get(self, run_id: str) -> GenerationRun | None:
        """Load the latest snapshot of a run, or None if unknown."""

    @abstractmethod
    def list_runs(self, limit: int | None = None) -> list[GenerationRun]:
        """Snapshots ordered newest first.

        Args:
            limit: Maximum number of runs to return
        """

    @abstractmethod
    def delete(self, run_id: str) -> bool:
        """Remove a run. Returns True if it existed."""

    def __contains__(self, run_id: str) -> bool:
        return self.get(run_id) is not None
