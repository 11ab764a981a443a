"""
JSON file history store.

Each run is one ``<run_id>.json`` file in the history directory. Files
are replaced atomically (tmp file + rename), so a reader never sees a
half-written snapshot. Only the newest ``max_runs`` files are kept.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from sectionforge.history.base import HistoryStore
from sectionforge.models.run import GenerationRun, safe_run_id

logger = logging.getLogger(__name__)


class JsonFileHistoryStore(HistoryStore):
    """History store backed by one JSON file per run.

    Args:
        directory: Directory holding the snapshot files
        max_runs: Number of runs retained (oldest files are pruned)
    """

    def __init__(self, directory: str | Path, max_runs: int = 50) -> None:
        self._directory = Path(directory)
        self._max_runs = max_runs
        self._directory.mkdir(parents=True, exist_ok=True)
        logger.debug(f"JsonFileHistoryStore initialized: {self._directory}")

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, run_id: str) -> Path:
        return self._directory / f"{safe_run_id(run_id)}.json"

    def snapshot(self, run_id: str, run: GenerationRun) -> None:
        path = self._path_for(run_id)
        self._atomic_write(path, run.model_dump_json(indent=2))
        self._prune(keep=path)

    def get(self, run_id: str) -> GenerationRun | None:
        path = self._path_for(run_id)
        if not path.exists():
            return None
        return self._read(path)

    def list_runs(self, limit: int | None = None) -> list[GenerationRun]:
        runs = []
        for path in self._snapshot_files(newest_first=True):
            run = self._read(path)
            if run is None:
                continue
            runs.append(run)
            if limit is not None and len(runs) >= limit:
                break
        return runs

    def delete(self, run_id: str) -> bool:
        path = self._path_for(run_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Deleted run {run_id} from history")
        return True

    def _read(self, path: Path) -> GenerationRun | None:
        try:
            return GenerationRun.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Failed to read history snapshot {path}: {e}")
            return None

    def _snapshot_files(self, newest_first: bool = False) -> list[Path]:
        files = [p for p in self._directory.glob("*.json") if p.is_file()]
        files.sort(key=lambda p: (p.stat().st_mtime_ns, p.name), reverse=newest_first)
        return files

    def _prune(self, keep: Path) -> None:
        """Delete the oldest snapshots beyond max_runs, never ``keep``."""
        files = self._snapshot_files()
        excess = len(files) - self._max_runs
        for path in files:
            if excess <= 0:
                break
            if path == keep:
                continue
            try:
                path.unlink()
                excess -= 1
                logger.debug(f"Pruned history snapshot {path.name}")
            except FileNotFoundError:
                excess -= 1

    def _atomic_write(self, path: Path, content: str) -> None:
        """Atomically write content to a file.

        Uses tmp file + rename pattern for crash safety.
        """
        tmp_path = path.with_suffix(path.suffix + ".tmp")

        try:
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
            logger.error(f"Failed to write history snapshot {path}: {e}")
            raise
