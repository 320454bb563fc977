"""Repair diff models"""

from __future__ import annotations

from pydantic import BaseModel


class DiffHunk(BaseModel):
    """One region the repair engine rewrote"""

    start_line: int  # 1-indexed, in the pre-repair text
    end_line: int
    removed: str
    added: str
    change_type: str  # "add", "modify", "delete"


class DiffResult(BaseModel):
    """Pre-repair vs. repaired content of a single file"""

    file_path: str
    hunks: list[DiffHunk]
    unified_diff: str
    lines_added: int = 0
    lines_removed: int = 0
