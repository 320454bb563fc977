"""Shared fixtures for the weblisite backend tests."""

from __future__ import annotations

import asyncio

import pytest

from weblisite.services.config_manager import ConfigManager
from weblisite.services.event_bus import CallbackSink
from weblisite.services.file_service import FileService
from weblisite.services.syntax_repair import SyntaxValidationService

FENCE = "```"


def file_block(path: str, body: str, lang: str = "jsx") -> str:
    """One well-formed block as the model is asked to write it."""
    return f"File: {path}\n{FENCE}{lang}\n{body}{FENCE}\n"


def scripted_source(chunks: list[str], prompts: list[str] | None = None, fail_with: Exception | None = None):
    """LLM source replaying fixed deltas (and optionally failing afterwards)."""

    async def source(prompt: str, system: str | None = None):
        if prompts is not None:
            prompts.append(prompt)
        for chunk in chunks:
            await asyncio.sleep(0)
            yield chunk
        if fail_with is not None:
            raise fail_with

    return source


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Each test gets its own config directory and no real API keys."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("WEBLISITE_CONFIG_DIR", str(config_dir))
    for name in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    ConfigManager.reset_instance()
    yield config_dir
    ConfigManager.reset_instance()


@pytest.fixture
def validator():
    return SyntaxValidationService()


@pytest.fixture
def store(tmp_path, validator):
    return FileService(tmp_path / "project", validator)


@pytest.fixture
def recorded():
    """(sink, events) pair; the sink appends every emitted event."""
    events = []
    return CallbackSink(events.append), events
