"""
Tests for event delivery, wire models and the run registry.
"""

import asyncio

import pytest

from weblisite.models.events import (
    FileChunkEvent,
    FileStartedEvent,
    GenerationCompleteEvent,
    GenerationErrorEvent,
    event_payload,
)
from weblisite.models.generation import ArtifactState, FileArtifact, RunState, ValidationResult
from weblisite.services.event_bus import BroadcastHub, CallbackSink
from weblisite.services.run_registry import RunInProgressError, RunRegistry


# ═══════════════════════════════════════════════════════════════════
#  Sinks
# ═══════════════════════════════════════════════════════════════════


class TestCallbackSink:
    def test_sync_callback(self):
        seen = []
        asyncio.run(CallbackSink(seen.append).emit(GenerationCompleteEvent()))
        assert [e.type for e in seen] == ["generation-complete"]

    def test_async_callback(self):
        seen = []

        async def callback(event):
            seen.append(event)

        asyncio.run(CallbackSink(callback).emit(GenerationCompleteEvent()))
        assert len(seen) == 1


class TestBroadcastHub:
    def test_fan_out(self):
        async def scenario():
            hub = BroadcastHub()
            first, second = hub.subscribe(), hub.subscribe()
            await hub.emit(FileStartedEvent(path="src/App.jsx", name="App.jsx"))
            return first.get_nowait(), second.get_nowait()

        a, b = asyncio.run(scenario())
        assert a.path == b.path == "src/App.jsx"

    def test_full_queue_drops_events(self):
        async def scenario():
            hub = BroadcastHub(max_queue_size=1)
            queue = hub.subscribe()
            await hub.emit(GenerationCompleteEvent())
            await hub.emit(GenerationErrorEvent(message="late"))
            return queue.qsize()

        assert asyncio.run(scenario()) == 1

    def test_stream_unsubscribes_when_closed(self):
        async def scenario():
            hub = BroadcastHub()
            stream = hub.stream()
            pending = asyncio.ensure_future(stream.__anext__())
            await asyncio.sleep(0)
            assert hub.subscriber_count == 1
            await hub.emit(GenerationCompleteEvent())
            event = await pending
            await stream.aclose()
            return event, hub.subscriber_count

        event, remaining = asyncio.run(scenario())
        assert event.type == "generation-complete"
        assert remaining == 0


# ═══════════════════════════════════════════════════════════════════
#  Wire models
# ═══════════════════════════════════════════════════════════════════


class TestWireEvents:
    def test_payload_omits_type(self):
        event = FileChunkEvent(path="src/App.jsx", text="line\n")
        assert event.type == "file-chunk"
        assert event_payload(event) == {"path": "src/App.jsx", "text": "line\n"}

    def test_error_payload(self):
        assert event_payload(GenerationErrorEvent(message="boom")) == {"message": "boom"}


class TestFileArtifact:
    def test_lifecycle(self):
        artifact = FileArtifact(path="src/App.jsx")
        artifact.start()
        artifact.append("a")
        artifact.append("b")
        artifact.complete(truncated=True)
        assert artifact.state == ArtifactState.COMPLETED
        assert artifact.source_content == "ab"
        assert artifact.name == "App.jsx"

        result = ValidationResult(path="src/App.jsx", original="ab", content="ab;")
        validated = artifact.validated(result)
        assert validated.state == ArtifactState.VALIDATED
        assert validated.content == "ab;"
        assert validated.truncated
        assert artifact.content == "ab"

    def test_append_requires_streaming(self):
        with pytest.raises(ValueError):
            FileArtifact(path="a.js").append("x")

    def test_validate_requires_completed(self):
        artifact = FileArtifact(path="a.js")
        artifact.start()
        with pytest.raises(ValueError):
            artifact.validated(ValidationResult(path="a.js", original="", content=""))

    def test_terminal_states(self):
        assert RunState.TIMED_OUT.terminal
        assert not RunState.RUNNING.terminal


# ═══════════════════════════════════════════════════════════════════
#  Run registry
# ═══════════════════════════════════════════════════════════════════


class TestRunRegistry:
    def test_second_acquire_fails(self):
        registry = RunRegistry()
        lease = registry.acquire("site")
        with pytest.raises(RunInProgressError) as exc:
            registry.acquire("site")
        assert exc.value.run_id == lease.run_id

    def test_release_only_own_lease(self):
        registry = RunRegistry()
        first = registry.acquire("site")
        registry.release(first)
        second = registry.acquire("site")
        registry.release(first)
        assert registry.active_run("site") is second
