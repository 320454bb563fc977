"""
Stream Demuxer - split a streamed LLM completion into file blocks

The completion is expected to contain blocks of the form::

    File: src/components/Foo.jsx
    ```jsx
    ...file body...
    ```

Parsing is line oriented. State only changes when a complete,
newline-terminated line is available, so the events produced for a given
text never depend on how that text was split into deltas.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

logger = logging.getLogger(__name__)

EXTENSIONS = ("tsx", "jsx", "ts", "js", "css", "html", "json", "svg", "md")

_PATH = r"[A-Za-z0-9_/.()\-]+\.(?:" + "|".join(EXTENSIONS) + r")"

STRICT_HEADER = re.compile(r"^\s*File:\s*(" + _PATH + r")\s*$")
# Bare path line, optionally dressed up as a markdown heading, bold/italic or inline code
LOOSE_HEADER = re.compile(
    r"^\s*(?:#+\s*)?(?:\d+\.\s*)?[*_`]*\s*(?:File:\s*)?(" + _PATH + r")\s*[*_`]*\s*:?\s*$"
)
OPEN_FENCE = re.compile(r"^\s*```[\w+#.\-]*\s*$")
# A closing fence may trail the last line of content ("}```")
CLOSE_FENCE = re.compile(r"^([^`]*?)```\s*$")
# Inside a Markdown body, a fence with a language tag opens a nested block
NESTED_FENCE = re.compile(r"^\s*```[\w+#.\-]+\s*$")


class DemuxState(str, Enum):
    SCANNING = "scanning"
    HEADER = "header"
    CAPTURING = "capturing"


class ReconcilePolicy(str, Enum):
    """What reconciliation does with a path that was already captured"""

    SKIP_EXISTING = "skip-existing"
    OVERWRITE = "overwrite"


@dataclass(frozen=True)
class FileStarted:
    path: str
    name: str


@dataclass(frozen=True)
class FileChunk:
    path: str
    text: str


@dataclass(frozen=True)
class FileCompleted:
    path: str
    content: str
    truncated: bool = False


DemuxEvent = Union[FileStarted, FileChunk, FileCompleted]


def normalize_block_path(raw: str) -> str | None:
    """Make a declared path project-relative, or None if it is unsafe."""
    path = raw.strip().replace("\\", "/")
    while path.startswith("./") or path.startswith("/"):
        path = path[2:] if path.startswith("./") else path[1:]
    parts = [p for p in path.split("/") if p not in ("", ".")]
    if not parts or ".." in parts:
        return None
    return "/".join(parts)


class StreamDemuxer:
    """Online parser turning text deltas into file events"""

    def __init__(self, loose: bool = False):
        self.loose = loose
        self._header = LOOSE_HEADER if loose else STRICT_HEADER
        self._raw: list[str] = []
        self._pending = ""
        self._state = DemuxState.SCANNING
        self._path: str | None = None
        self._lines: list[str] = []
        self._nested = 0
        self._completed: dict[str, str] = {}
        self._finished = False

    @property
    def state(self) -> DemuxState:
        return self._state

    @property
    def raw_text(self) -> str:
        return "".join(self._raw)

    @property
    def completed(self) -> dict[str, str]:
        """Content of every file completed so far, by path (last block wins)"""
        return dict(self._completed)

    def feed(self, delta: str) -> list[DemuxEvent]:
        """Consume one delta and return the events it completes."""
        if self._finished:
            raise RuntimeError("demuxer already finished")
        events: list[DemuxEvent] = []
        if not delta:
            return events
        self._raw.append(delta)
        self._pending += delta
        start = 0
        while True:
            nl = self._pending.find("\n", start)
            if nl == -1:
                break
            self._consume_line(self._pending[start : nl + 1], events)
            start = nl + 1
        self._pending = self._pending[start:]
        return events

    def finish(self) -> list[DemuxEvent]:
        """Signal end of stream; flush a file still being captured."""
        if self._finished:
            return []
        self._finished = True
        events: list[DemuxEvent] = []
        if self._pending:
            tail, self._pending = self._pending, ""
            self._consume_line(tail, events)
        if self._state == DemuxState.CAPTURING:
            logger.warning(f"[Demuxer] Stream ended while capturing {self._path}; flushing truncated file")
            events.append(self._complete(truncated=True))
        self._state = DemuxState.SCANNING
        return events

    def reconcile(
        self,
        existing: Iterable[str] | None = None,
        policy: ReconcilePolicy = ReconcilePolicy.SKIP_EXISTING,
    ) -> list[FileCompleted]:
        """Re-parse the whole raw text and return files the live pass did not yield.

        The strict grammar runs first, then the loose one. Paths in ``existing``
        (default: everything this demuxer completed) are skipped, or under
        ``OVERWRITE`` returned when the reconciled content differs.
        """
        seen = set(existing) if existing is not None else set(self._completed)
        raw = self.raw_text
        recovered: dict[str, FileCompleted] = {}
        for loose in (False, True):
            parser = StreamDemuxer(loose=loose)
            for event in parser.feed(raw) + parser.finish():
                if not isinstance(event, FileCompleted) or event.path in recovered:
                    continue
                if event.path in seen:
                    if policy == ReconcilePolicy.SKIP_EXISTING:
                        continue
                    if self._completed.get(event.path) == event.content:
                        continue
                recovered[event.path] = event
        if recovered:
            logger.info(f"[Demuxer] Reconciliation recovered {len(recovered)} file(s): {sorted(recovered)}")
        return list(recovered.values())

    # ---------- internals ----------

    def _consume_line(self, line: str, events: list[DemuxEvent]) -> None:
        body = line.rstrip("\r\n")
        if self._state == DemuxState.CAPTURING:
            m = None if self._nested_fence(body) else CLOSE_FENCE.match(body)
            if m is None:
                self._lines.append(line)
                events.append(FileChunk(self._path, line))
                return
            prefix = m.group(1)
            if prefix.strip():
                self._lines.append(prefix + "\n")
                events.append(FileChunk(self._path, prefix + "\n"))
            events.append(self._complete(truncated=False))
            self._state = DemuxState.SCANNING
            return

        if self._state == DemuxState.HEADER:
            if not body.strip():
                return
            if OPEN_FENCE.match(body):
                self._state = DemuxState.CAPTURING
                self._lines = []
                self._nested = 0
                events.append(FileStarted(self._path, posixpath.basename(self._path)))
                return
            # anything else abandons the header; it may itself be a new header
            self._state = DemuxState.SCANNING
            self._path = None

        m = self._header.match(body)
        if m is None:
            return
        path = normalize_block_path(m.group(1))
        if path is None:
            logger.warning(f"[Demuxer] Ignoring unsafe path in header: {m.group(1)!r}")
            return
        self._path = path
        self._state = DemuxState.HEADER

    def _nested_fence(self, body: str) -> bool:
        """Track fenced blocks inside a Markdown body; True if ``body`` opens or closes one."""
        if not self._path.endswith(".md"):
            return False
        if NESTED_FENCE.match(body):
            self._nested += 1
            return True
        if self._nested and body.strip() == "```":
            self._nested -= 1
            return True
        return False

    def _complete(self, truncated: bool) -> FileCompleted:
        content = "".join(self._lines)
        self._lines = []
        self._completed[self._path] = content
        return FileCompleted(self._path, content, truncated=truncated)
