"""
SectionForge - Run History

Stores the latest snapshot of every generation run.
"""

from sectionforge.config.models import HistoryBackend, HistoryConfig
from sectionforge.history.base import HistoryStore
from sectionforge.history.file import JsonFileHistoryStore
from sectionforge.history.memory import InMemoryHistoryStore


def create_history_store(config: HistoryConfig) -> HistoryStore:
    """Build the store selected by the ``history`` configuration section."""
    if config.backend == HistoryBackend.FILE:
        return JsonFileHistoryStore(config.directory, max_runs=config.max_runs)
    return InMemoryHistoryStore(max_runs=config.max_runs)


__all__ = [
    "HistoryStore",
    "InMemoryHistoryStore",
    "JsonFileHistoryStore",
    "create_history_store",
]
