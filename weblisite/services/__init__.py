"""Services module - Generation pipeline and supporting services"""

from .balance import ScanReport, closing_suffix, count_brace_deficit, is_balanced, scan, tags_closed
from .config_manager import ConfigManager, GenerationSettings
from .demuxer import FileChunk, FileCompleted, FileStarted, ReconcilePolicy, StreamDemuxer
from .diff_generator import DiffGenerator
from .error_locator import build_context_bundle, locate_candidate, normalize_path
from .event_bus import BroadcastHub, CallbackSink, EventSink
from .file_service import FileService, FileStoreError
from .llm_service import LLMService, LLMServiceError
from .orchestrator import GenerationError, GenerationOrchestrator
from .reconstructor import RECONSTRUCTED_MARKER, TemplateReconstructor
from .run_registry import RunInProgressError, RunLease, RunRegistry
from .runtime import Runtime
from .syntax_repair import ReconstructionPolicy, SyntaxValidationService

__all__ = [
    # Balance checks
    "ScanReport",
    "closing_suffix",
    "count_brace_deficit",
    "is_balanced",
    "scan",
    "tags_closed",
    # Stream demuxing
    "FileChunk",
    "FileCompleted",
    "FileStarted",
    "ReconcilePolicy",
    "StreamDemuxer",
    # Repair
    "DiffGenerator",
    "RECONSTRUCTED_MARKER",
    "ReconstructionPolicy",
    "SyntaxValidationService",
    "TemplateReconstructor",
    # Orchestration
    "BroadcastHub",
    "CallbackSink",
    "EventSink",
    "GenerationError",
    "GenerationOrchestrator",
    "RunInProgressError",
    "RunLease",
    "RunRegistry",
    "Runtime",
    "build_context_bundle",
    "locate_candidate",
    "normalize_path",
    # Infrastructure
    "ConfigManager",
    "FileService",
    "FileStoreError",
    "GenerationSettings",
    "LLMService",
    "LLMServiceError",
]
