"""Generation API endpoints"""

from __future__ import annotations

import json

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from weblisite.models.events import event_payload
from weblisite.models.generation import GenerationMode, GenerationRequest, RunResult
from weblisite.services.run_registry import RunInProgressError
from weblisite.services.runtime import Runtime

router = APIRouter()


class GenerateBody(BaseModel):
    """Request to generate a project"""

    prompt: str
    preferences: dict | None = None
    timeoutMs: int | None = Field(default=None, gt=0)
    projectId: str = "default"


class FixErrorBody(BaseModel):
    """Request to fix a reported error"""

    errorMessage: str
    preferences: dict | None = None
    timeoutMs: int | None = Field(default=None, gt=0)
    projectId: str = "default"


class RunAccepted(BaseModel):
    """A run was started in the background"""

    message: str
    runId: str
    projectId: str


class RunStatus(BaseModel):
    """Whether a project has an active run, and how its last run ended"""

    projectId: str
    active: bool
    runId: str | None = None
    lastRun: RunResult | None = None


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def _start(runtime: Runtime, run_request: GenerationRequest, message: str) -> RunAccepted:
    try:
        lease = runtime.start_run(run_request)
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return RunAccepted(message=message, runId=lease.run_id, projectId=run_request.project_id)


@router.post("/generate", status_code=202, response_model=RunAccepted)
async def generate(body: GenerateBody, request: Request) -> RunAccepted:
    """Start generating a project from a prompt"""
    if not body.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")
    runtime = get_runtime(request)
    run_request = GenerationRequest(
        prompt=body.prompt,
        mode=GenerationMode.GENERATE,
        preferences=body.preferences,
        timeout_ms=body.timeoutMs or runtime.settings.timeout_ms,
        project_id=body.projectId,
    )
    return _start(runtime, run_request, "Generation started")


@router.post("/fix-error", status_code=202, response_model=RunAccepted)
async def fix_error(body: FixErrorBody, request: Request) -> RunAccepted:
    """Start an error-fix run"""
    if not body.errorMessage.strip():
        raise HTTPException(status_code=400, detail="Error message is required")
    runtime = get_runtime(request)
    run_request = GenerationRequest(
        prompt=body.errorMessage,
        mode=GenerationMode.FIX_ERROR,
        preferences=body.preferences,
        timeout_ms=body.timeoutMs or runtime.settings.fix_timeout_ms,
        project_id=body.projectId,
    )
    return _start(runtime, run_request, "Error fix started")


@router.get("/runs/{project_id}", response_model=RunStatus)
async def run_status(project_id: str, request: Request) -> RunStatus:
    """Active run and last result for a project"""
    runtime = get_runtime(request)
    lease = runtime.registry.active_run(project_id)
    return RunStatus(
        projectId=project_id,
        active=lease is not None,
        runId=lease.run_id if lease else None,
        lastRun=runtime.results.get(project_id),
    )


@router.get("/events")
async def events(request: Request):
    """Stream generation events (SSE); the event name is the event type"""
    hub = get_runtime(request).hub

    async def event_generator():
        async for event in hub.stream():
            yield {"event": event.type, "data": json.dumps(event_payload(event))}

    return EventSourceResponse(event_generator())
