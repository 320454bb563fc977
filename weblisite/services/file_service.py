"""
File Service - persistence of generated files under the project directory

Every final write goes through the shared validation service. Writes to the
same path are serialized and the most recently issued write always wins.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path

from weblisite.models.generation import ValidationResult
from weblisite.services.demuxer import normalize_block_path
from weblisite.services.syntax_repair import SyntaxValidationService

logger = logging.getLogger(__name__)

IGNORED_DIRECTORIES = {"node_modules", ".git", "dist", "build", ".vite"}

SCAFFOLD_DIRECTORIES = ("src/components", "src/pages", "src/assets", "src/utils", "public")


class FileStoreError(ValueError):
    """A path that cannot be stored inside the project"""


class FileService:
    """Project working tree"""

    def __init__(self, project_dir: str | Path, validator: SyntaxValidationService | None = None):
        self.project_dir = Path(project_dir).resolve()
        self.validator = validator or SyntaxValidationService()
        self._locks: dict[str, asyncio.Lock] = {}
        self._issued: dict[str, int] = {}

    def relative_path(self, path: str) -> str:
        rel = normalize_block_path(path)
        if rel is None:
            raise FileStoreError(f"Unsafe file path: {path!r}")
        return rel

    def resolve(self, path: str) -> Path:
        """Absolute location of ``path`` inside the project directory"""
        full = (self.project_dir / self.relative_path(path)).resolve()
        if full != self.project_dir and self.project_dir not in full.parents:
            raise FileStoreError(f"Path escapes the project directory: {path!r}")
        return full

    def _lock(self, rel: str) -> asyncio.Lock:
        lock = self._locks.get(rel)
        if lock is None:
            lock = self._locks[rel] = asyncio.Lock()
        return lock

    @staticmethod
    def _write(full: Path, content: str) -> None:
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text(content, encoding="utf-8")

    async def create_or_update_file(self, path: str, content: str) -> ValidationResult:
        """Validate and write a file; returns the validation outcome."""
        rel = self.relative_path(path)
        full = self.resolve(rel)
        result = self.validator.validate(rel, content)

        sequence = self._issued.get(rel, 0) + 1
        self._issued[rel] = sequence
        async with self._lock(rel):
            if self._issued[rel] != sequence:
                logger.debug(f"[FileService] Skipping superseded write #{sequence} of {rel}")
                return result
            await asyncio.to_thread(self._write, full, result.content)
        logger.info(f"[FileService] Wrote {rel} ({len(result.content)} chars)")
        return result

    async def write_partial(self, path: str, content: str) -> bool:
        """Best-effort write of in-progress content; failures are only logged."""
        try:
            rel = self.relative_path(path)
            full = self.resolve(rel)
            async with self._lock(rel):
                await asyncio.to_thread(self._write, full, content)
            return True
        except (OSError, FileStoreError) as e:
            logger.warning(f"[FileService] Partial write of {path} failed: {e}")
            return False

    def _clear(self) -> int:
        self.project_dir.mkdir(parents=True, exist_ok=True)
        removed = 0
        for entry in self.project_dir.iterdir():
            if entry.name in IGNORED_DIRECTORIES:
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
        for folder in SCAFFOLD_DIRECTORIES:
            (self.project_dir / folder).mkdir(parents=True, exist_ok=True)
        return removed

    async def reset(self) -> None:
        """Empty the project tree for a fresh generation.

        Installed dependencies and build output (``IGNORED_DIRECTORIES``) are
        kept; the usual ``src/`` and ``public/`` folders are recreated.
        """
        removed = await asyncio.to_thread(self._clear)
        logger.info(f"[FileService] Reset {self.project_dir} ({removed} entries removed)")

    def exists(self, path: str) -> bool:
        try:
            return self.resolve(path).is_file()
        except FileStoreError:
            return False

    def read_file(self, path: str) -> str:
        full = self.resolve(path)
        if not full.is_file():
            raise FileNotFoundError(path)
        return full.read_text(encoding="utf-8")

    def list_files(self) -> list[str]:
        """Project-relative paths of every file, sorted"""
        if not self.project_dir.is_dir():
            return []
        files = []
        for root, dirs, names in os.walk(self.project_dir):
            dirs[:] = sorted(d for d in dirs if d not in IGNORED_DIRECTORIES)
            for name in names:
                rel = Path(root, name).relative_to(self.project_dir)
                files.append(rel.as_posix())
        return sorted(files)
