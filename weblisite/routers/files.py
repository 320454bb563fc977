"""Project file API endpoints"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from weblisite.models.generation import ValidationDiagnostic
from weblisite.services.file_service import FileService, FileStoreError

router = APIRouter()


class FileWriteRequest(BaseModel):
    """Request to create or update a file"""

    path: str
    content: str


class FileContentResponse(BaseModel):
    """A stored file"""

    path: str
    content: str


class FileWriteResponse(BaseModel):
    """Outcome of a write, after validation"""

    path: str
    content: str
    changed: bool
    reconstructed: bool
    diagnostics: list[ValidationDiagnostic]


def get_store(request: Request) -> FileService:
    return request.app.state.runtime.store


@router.get("")
async def list_files(request: Request) -> dict[str, list[str]]:
    """List project files"""
    return {"files": get_store(request).list_files()}


@router.get("/content", response_model=FileContentResponse)
async def read_file(path: str, request: Request) -> FileContentResponse:
    """Read one project file"""
    try:
        content = get_store(request).read_file(path)
    except FileStoreError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"File not found: {path}")
    return FileContentResponse(path=path, content=content)


@router.put("", response_model=FileWriteResponse)
async def write_file(body: FileWriteRequest, request: Request) -> FileWriteResponse:
    """Validate and store a file"""
    try:
        result = await get_store(request).create_or_update_file(body.path, body.content)
    except FileStoreError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return FileWriteResponse(
        path=result.path,
        content=result.content,
        changed=result.changed,
        reconstructed=result.reconstructed,
        diagnostics=result.diagnostics,
    )
