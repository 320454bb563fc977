"""
Runtime - the long-lived services one backend process shares

Built once in the application lifespan and kept on ``app.state.runtime``.
Each run gets a fresh orchestrator bound to the current configuration.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from weblisite.models.generation import GenerationRequest, RunResult
from weblisite.services.config_manager import ConfigManager, GenerationSettings
from weblisite.services.event_bus import BroadcastHub
from weblisite.services.file_service import FileService
from weblisite.services.llm_service import LLMService
from weblisite.services.orchestrator import GenerationOrchestrator, LLMSource
from weblisite.services.run_registry import RunLease, RunRegistry
from weblisite.services.syntax_repair import SyntaxValidationService

logger = logging.getLogger(__name__)


def default_llm_source(config: dict[str, Any]) -> LLMSource:
    return LLMService(config).generate_response_stream


class Runtime:
    """Shared validator, store, hub and registry"""

    def __init__(
        self,
        config_manager: ConfigManager,
        llm_source_factory: Callable[[dict[str, Any]], LLMSource] = default_llm_source,
    ):
        self.config_manager = config_manager
        self.llm_source_factory = llm_source_factory
        self.settings = GenerationSettings.from_config(config_manager.get_config())
        self.validator = SyntaxValidationService(
            policy=self.settings.reconstruction_policy,
            baseline_dependencies=self.settings.baseline_dependencies,
        )
        self.store = FileService(self.settings.project_dir, self.validator)
        self.hub = BroadcastHub()
        self.registry = RunRegistry()
        self.results: dict[str, RunResult] = {}
        self._tasks: set[asyncio.Task] = set()

    def refresh_settings(self) -> None:
        """Apply the saved ``generation`` section (the project directory stays fixed)"""
        self.settings = GenerationSettings.from_config(self.config_manager.get_config())
        self.validator.policy = self.settings.reconstruction_policy
        self.validator.baseline_dependencies = dict(self.settings.baseline_dependencies)

    def orchestrator(self) -> GenerationOrchestrator:
        config = self.config_manager.get_config()
        return GenerationOrchestrator(
            llm_source=self.llm_source_factory(config),
            validator=self.validator,
            store=self.store,
            sink=self.hub,
            registry=self.registry,
            settings=self.settings,
        )

    def start_run(self, request: GenerationRequest) -> RunLease:
        """Claim the project and run in the background; raises RunInProgressError."""
        lease = self.registry.acquire(request.project_id)
        try:
            orchestrator = self.orchestrator()
        except Exception:
            self.registry.release(lease)
            raise
        task = asyncio.create_task(self._run(orchestrator, request, lease))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return lease

    async def _run(self, orchestrator: GenerationOrchestrator, request: GenerationRequest, lease: RunLease) -> None:
        result = await orchestrator.run(request, lease)
        self.results[request.project_id] = result

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
