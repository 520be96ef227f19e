"""Persistence collaborators for run records and agent snapshots."""

from flowcore.storage.run_store import FileRunStore, RunRecorder

__all__ = ["FileRunStore", "RunRecorder"]
