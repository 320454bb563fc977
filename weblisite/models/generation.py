"""Generation run data models"""

from __future__ import annotations

import posixpath
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .diff import DiffResult


class GenerationMode(str, Enum):
    """What a run is asked to do"""

    GENERATE = "generate"
    FIX_ERROR = "fix-error"


class ArtifactState(str, Enum):
    """Lifecycle of a single generated file"""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    VALIDATED = "validated"


class RunState(str, Enum):
    """Lifecycle of a generation run"""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.FAILED, RunState.TIMED_OUT)


class DiagnosticKind(str, Enum):
    """Kinds of findings the repair engine reports"""

    LANGUAGE_TAG = "language-tag"
    UNBALANCED_BRACKETS = "unbalanced-brackets"
    UNCLOSED_TAG = "unclosed-tag"
    STRAY_PARENTHESIS = "stray-parenthesis"
    DUPLICATE_CLOSING_TAG = "duplicate-closing-tag"
    ADJACENT_ROOTS = "adjacent-roots"
    MISSING_EXPORT = "missing-export"
    MANIFEST_PARSE_ERROR = "manifest-parse-error"
    MANIFEST_DEPENDENCIES = "manifest-dependencies"
    ENTRY_POINT_TEMPLATE = "entry-point-template"
    RECONSTRUCTED = "reconstructed"
    REPAIR_FAILED = "repair-failed"


class GenerationRequest(BaseModel):
    """One external trigger for a run"""

    model_config = ConfigDict(frozen=True)

    prompt: str
    mode: GenerationMode = GenerationMode.GENERATE
    preferences: dict[str, Any] | None = None
    timeout_ms: int = Field(default=180_000, gt=0)
    project_id: str = "default"

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class ValidationDiagnostic(BaseModel):
    """A finding attached to a file at validation time (never blocks persistence)"""

    kind: DiagnosticKind
    message: str
    auto_fixed: bool = False


class ValidationResult(BaseModel):
    """Output of the shared validation service"""

    path: str
    original: str
    content: str
    diagnostics: list[ValidationDiagnostic] = []
    reconstructed: bool = False
    diff: DiffResult | None = None

    @property
    def changed(self) -> bool:
        return self.content != self.original


class FileArtifact(BaseModel):
    """A file reconstructed from the stream"""

    path: str
    content: str = ""
    state: ArtifactState = ArtifactState.PENDING
    diagnostics: list[ValidationDiagnostic] = []
    truncated: bool = False
    source_content: str | None = None  # completed, pre-repair text
    persisted: bool = False
    persist_error: str | None = None

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def reconstructed(self) -> bool:
        return any(d.kind == DiagnosticKind.RECONSTRUCTED for d in self.diagnostics)

    def start(self) -> None:
        if self.state != ArtifactState.PENDING:
            raise ValueError(f"{self.path}: cannot start from state {self.state.value}")
        self.state = ArtifactState.STREAMING

    def append(self, text: str) -> None:
        if self.state != ArtifactState.STREAMING:
            raise ValueError(f"{self.path}: cannot append in state {self.state.value}")
        self.content += text

    def complete(self, truncated: bool = False) -> None:
        if self.state not in (ArtifactState.PENDING, ArtifactState.STREAMING):
            raise ValueError(f"{self.path}: cannot complete from state {self.state.value}")
        self.state = ArtifactState.COMPLETED
        self.truncated = truncated
        self.source_content = self.content

    def validated(self, result: ValidationResult) -> FileArtifact:
        """Return the validated successor; this (completed) artifact stays as it was."""
        if self.state != ArtifactState.COMPLETED:
            raise ValueError(f"{self.path}: only completed artifacts can be validated")
        return self.model_copy(
            update={
                "content": result.content,
                "state": ArtifactState.VALIDATED,
                "diagnostics": list(result.diagnostics),
            },
            deep=True,
        )


class RunResult(BaseModel):
    """Summary of a finished run"""

    run_id: str
    mode: GenerationMode
    state: RunState = RunState.IDLE
    files: list[FileArtifact] = []
    recovered: list[str] = []
    error: str | None = None
    candidate_path: str | None = None

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]
