"""Models module - Pydantic data models"""

from .diff import DiffHunk, DiffResult
from .events import (
    FileChunkEvent,
    FileCompletedEvent,
    FileStartedEvent,
    GenerationCompleteEvent,
    GenerationErrorEvent,
    WireEvent,
    event_payload,
)
from .generation import (
    ArtifactState,
    DiagnosticKind,
    FileArtifact,
    GenerationMode,
    GenerationRequest,
    RunResult,
    RunState,
    ValidationDiagnostic,
    ValidationResult,
)

__all__ = [
    # Generation models
    "ArtifactState",
    "DiagnosticKind",
    "FileArtifact",
    "GenerationMode",
    "GenerationRequest",
    "RunResult",
    "RunState",
    "ValidationDiagnostic",
    "ValidationResult",
    # Event models
    "FileChunkEvent",
    "FileCompletedEvent",
    "FileStartedEvent",
    "GenerationCompleteEvent",
    "GenerationErrorEvent",
    "WireEvent",
    "event_payload",
    # Diff models
    "DiffHunk",
    "DiffResult",
]
