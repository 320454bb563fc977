"""
Generation Orchestrator - one end-to-end generation or error-fix run

LLM deltas are fed to the demuxer in arrival order. Each completed file is
validated and persisted before the next delta is read. On stream end the
demuxer's reconciliation pass may recover more files; the same flush runs
when the LLM stream breaks off, so captured files are kept. The run ends with
``generation-complete`` on success, ``generation-error`` on failure, and both
on timeout; nothing is emitted or persisted after that.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Optional

import aiohttp

from weblisite.models.events import (
    FileChunkEvent,
    FileCompletedEvent,
    FileStartedEvent,
    GenerationCompleteEvent,
    GenerationErrorEvent,
    WireEvent,
)
from weblisite.models.generation import (
    FileArtifact,
    GenerationMode,
    GenerationRequest,
    RunResult,
    RunState,
)
from weblisite.services.config_manager import GenerationSettings
from weblisite.services.demuxer import (
    DemuxEvent,
    FileChunk,
    FileCompleted,
    FileStarted,
    StreamDemuxer,
)
from weblisite.services.error_locator import build_context_bundle, locate_candidate
from weblisite.services.event_bus import EventSink
from weblisite.services.file_service import FileService, FileStoreError
from weblisite.services.llm_service import LLMServiceError
from weblisite.services.prompts import SYSTEM_PROMPT, build_error_fix_prompt, build_generation_prompt
from weblisite.services.run_registry import RunLease, RunRegistry
from weblisite.services.syntax_repair import SyntaxValidationService

logger = logging.getLogger(__name__)

LLMSource = Callable[[str, Optional[str]], AsyncIterator[str]]


class GenerationError(Exception):
    """A run finished without a usable result"""


@dataclass
class _Run:
    request: GenerationRequest
    result: RunResult
    artifacts: dict[str, FileArtifact] = field(default_factory=dict)
    closed: bool = False


class GenerationOrchestrator:
    """Drive runs from request to terminal event"""

    def __init__(
        self,
        llm_source: LLMSource,
        validator: SyntaxValidationService,
        store: FileService,
        sink: EventSink,
        registry: RunRegistry | None = None,
        settings: GenerationSettings | None = None,
    ):
        self.llm_source = llm_source
        self.validator = validator
        self.store = store
        self.sink = sink
        self.registry = registry or RunRegistry()
        self.settings = settings or GenerationSettings()

    async def run(self, request: GenerationRequest, lease: RunLease | None = None) -> RunResult:
        """Execute one run. The lease (acquired here when not given) is released at the end."""
        if lease is None:
            lease = self.registry.acquire(request.project_id)
        run = _Run(request, RunResult(run_id=lease.run_id, mode=request.mode, state=RunState.RUNNING))
        logger.info(f"[Orchestrator] Run {lease.run_id} started ({request.mode.value}, timeout {request.timeout_ms} ms)")
        try:
            try:
                await asyncio.wait_for(self._drive(run), timeout=request.timeout_seconds)
            except asyncio.TimeoutError:
                run.result.state = RunState.TIMED_OUT
                run.result.error = f"Generation timed out after {request.timeout_ms / 1000:g} seconds"
                logger.warning(f"[Orchestrator] Run {lease.run_id}: {run.result.error}")
                await self._terminate(run, GenerationErrorEvent(message=run.result.error), GenerationCompleteEvent())
            except Exception as e:
                run.result.state = RunState.FAILED
                run.result.error = str(e) or e.__class__.__name__
                logger.exception(f"[Orchestrator] Run {lease.run_id} failed")
                await self._terminate(run, GenerationErrorEvent(message=run.result.error))
            else:
                run.result.state = RunState.COMPLETED
                await self._terminate(run, GenerationCompleteEvent())
        finally:
            run.result.files = list(run.artifacts.values())
            self.registry.release(lease)
        logger.info(
            f"[Orchestrator] Run {lease.run_id} ended as {run.result.state.value} with {len(run.result.files)} file(s)"
        )
        return run.result

    # ========== Run body ==========

    def _build_prompt(self, run: _Run) -> str:
        request = run.request
        if request.mode == GenerationMode.GENERATE:
            return build_generation_prompt(request.prompt, request.preferences)
        candidate = locate_candidate(request.prompt)
        resolved, context = build_context_bundle(self.store, candidate)
        run.result.candidate_path = resolved or candidate
        logger.info(f"[Orchestrator] Error-fix candidate: {run.result.candidate_path or 'unknown'}")
        return build_error_fix_prompt(request.prompt, resolved or candidate, context, request.preferences)

    async def _drive(self, run: _Run) -> None:
        prompt = self._build_prompt(run)
        if run.request.mode == GenerationMode.GENERATE:
            await self.store.reset()
        demuxer = StreamDemuxer()
        try:
            async for delta in self.llm_source(prompt, SYSTEM_PROMPT):
                for event in demuxer.feed(delta):
                    await self._handle(run, event)
        except asyncio.TimeoutError as e:
            # a transport timeout, not the run deadline
            await self._salvage(run, demuxer)
            raise LLMServiceError("LLM stream timed out") from e
        except (LLMServiceError, aiohttp.ClientError):
            await self._salvage(run, demuxer)
            raise

        await self._flush(run, demuxer)

        if run.request.mode == GenerationMode.GENERATE and not run.artifacts:
            raise GenerationError("No files were found in the model response")

    async def _salvage(self, run: _Run, demuxer: StreamDemuxer) -> None:
        """Complete and persist what was captured before the stream broke off"""
        logger.warning(f"[Orchestrator] Run {run.result.run_id}: LLM stream failed; keeping captured files")
        await self._flush(run, demuxer)

    async def _flush(self, run: _Run, demuxer: StreamDemuxer) -> None:
        for event in demuxer.finish():
            await self._handle(run, event)

        for completed in demuxer.reconcile(run.artifacts.keys(), self.settings.reconcile_policy):
            run.result.recovered.append(completed.path)
            await self._handle(run, FileStarted(completed.path, completed.path.rsplit("/", 1)[-1]))
            if completed.content:
                await self._handle(run, FileChunk(completed.path, completed.content))
            await self._handle(run, completed)

    async def _handle(self, run: _Run, event: DemuxEvent) -> None:
        if isinstance(event, FileStarted):
            artifact = FileArtifact(path=event.path)
            artifact.start()
            if event.path in run.artifacts:
                logger.info(f"[Orchestrator] {event.path} generated again; the later block wins")
            run.artifacts[event.path] = artifact
            await self._emit(run, FileStartedEvent(path=event.path, name=event.name))

        elif isinstance(event, FileChunk):
            artifact = run.artifacts[event.path]
            artifact.append(event.text)
            await self._emit(run, FileChunkEvent(path=event.path, text=event.text))
            if self.settings.materialize_partial and not run.closed:
                await self.store.write_partial(event.path, artifact.content)

        elif isinstance(event, FileCompleted):
            artifact = run.artifacts[event.path]
            artifact.complete(truncated=event.truncated)
            validated = artifact.validated(self.validator.validate(event.path, artifact.content))
            run.artifacts[event.path] = validated
            await self._persist(run, validated)
            await self._emit(run, FileCompletedEvent(path=event.path))

    async def _persist(self, run: _Run, artifact: FileArtifact) -> None:
        if run.closed:
            return
        try:
            await self.store.create_or_update_file(artifact.path, artifact.content)
            artifact.persisted = True
        except (OSError, FileStoreError) as e:
            artifact.persist_error = str(e)
            logger.error(f"[Orchestrator] Failed to persist {artifact.path}: {e}")

    # ========== Events ==========

    async def _emit(self, run: _Run, event: WireEvent) -> None:
        if run.closed:
            logger.debug(f"[Orchestrator] Dropping {event.type} after run end")
            return
        await self.sink.emit(event)

    async def _terminate(self, run: _Run, *events: WireEvent) -> None:
        for event in events:
            await self._emit(run, event)
        run.closed = True
