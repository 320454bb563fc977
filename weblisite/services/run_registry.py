"""Run registry - at most one active generation run per project"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class RunInProgressError(RuntimeError):
    """A run is already active for the project"""

    def __init__(self, project_id: str, run_id: str):
        super().__init__(f"A generation run ({run_id}) is already active for project '{project_id}'")
        self.project_id = project_id
        self.run_id = run_id


@dataclass
class RunLease:
    project_id: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.monotonic)


class RunRegistry:
    """Per-project mutual exclusion for runs"""

    def __init__(self):
        self._active: dict[str, RunLease] = {}

    def acquire(self, project_id: str) -> RunLease:
        current = self._active.get(project_id)
        if current is not None:
            raise RunInProgressError(project_id, current.run_id)
        lease = RunLease(project_id)
        self._active[project_id] = lease
        logger.info(f"[RunRegistry] Run {lease.run_id} started for project '{project_id}'")
        return lease

    def release(self, lease: RunLease) -> None:
        if self._active.get(lease.project_id) is lease:
            del self._active[lease.project_id]
            logger.info(f"[RunRegistry] Run {lease.run_id} released project '{lease.project_id}'")

    def is_active(self, project_id: str) -> bool:
        return project_id in self._active

    def active_run(self, project_id: str) -> RunLease | None:
        return self._active.get(project_id)
