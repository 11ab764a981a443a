"""
In-memory history store.

Snapshots are kept as JSON strings so a stored run never aliases the
live object the tracker keeps mutating.
"""

import logging
from collections import OrderedDict

from sectionforge.history.base import HistoryStore
from sectionforge.models.run import GenerationRun

logger = logging.getLogger(__name__)


class InMemoryHistoryStore(HistoryStore):
    """History store held in process memory.

    Args:
        max_runs: Number of runs retained; the least recently written
            run is evicted first. None keeps everything.
    """

    def __init__(self, max_runs: int | None = None) -> None:
        self._max_runs = max_runs
        self._snapshots: OrderedDict[str, str] = OrderedDict()

    def snapshot(self, run_id: str, run: GenerationRun) -> None:
        self._snapshots[run_id] = run.model_dump_json()
        self._snapshots.move_to_end(run_id)

        if self._max_runs is not None:
            while len(self._snapshots) > self._max_runs:
                evicted, _ = self._snapshots.popitem(last=False)
                logger.debug(f"Evicted run {evicted} from history")

    def get(self, run_id: str) -> GenerationRun | None:
        data = self._snapshots.get(run_id)
        if data is None:
            return None
        return GenerationRun.model_validate_json(data)

    def list_runs(self, limit: int | None = None) -> list[GenerationRun]:
        run_ids = list(reversed(self._snapshots))
        if limit is not None:
            run_ids = run_ids[:limit]
        return [GenerationRun.model_validate_json(self._snapshots[rid]) for rid in run_ids]

    def delete(self, run_id: str) -> bool:
        return self._snapshots.pop(run_id, None) is not None

    def __len__(self) -> int:
        return len(self._snapshots)
