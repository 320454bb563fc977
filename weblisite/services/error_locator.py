"""
Error locator - guess which project file an error report is about

Heuristics run in a fixed order and the first hit wins. The context bundle
sent along with the fix prompt is the candidate file when it exists, or a
summary of the manifest and bootstrap files otherwise.
"""

from __future__ import annotations

import logging
import posixpath
import re

from weblisite.services.demuxer import normalize_block_path
from weblisite.services.file_service import FileService

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = (".jsx", ".tsx", ".js", ".ts", ".css")
KEY_FILES = (
    "index.html",
    "src/main.jsx",
    "src/main.tsx",
    "src/App.jsx",
    "src/App.tsx",
    "src/index.js",
    "src/index.tsx",
)
FALLBACK_FILE_COUNT = 3

_EXT = r"\.(?:jsx|tsx|js|ts|css)"

HEURISTICS: list[tuple[str, re.Pattern]] = [
    ("quoted-path", re.compile(r"""["'`]([^"'`\s]+""" + _EXT + r""")["'`]""")),
    ("path-with-position", re.compile(r"([A-Za-z0-9_\-/.\\@:]+" + _EXT + r"):\d+(?::\d+)?")),
    (
        "module-not-found",
        re.compile(
            r"""(?:Cannot find module|Failed to resolve (?:module|import)|Module not found)[^'"]*['"]([^'"]+)['"]""",
            re.IGNORECASE,
        ),
    ),
    ("bare-path", re.compile(r"(?:^|[\s(])([A-Za-z0-9_\-/.@]+" + _EXT + r")\b")),
    ("import-specifier", re.compile(r"""\b(?:import|export)\b[^'"\n]+['"]([^'"]+)['"]""")),
]
_REACT_COMPONENT = re.compile(r"error occurred in the <([A-Z]\w*)> component", re.IGNORECASE)
_COMPONENT_MENTION = re.compile(r"\b(?:component|Component|element)\s+<?([A-Z][A-Za-z0-9]+)")


def normalize_path(candidate: str) -> str | None:
    """Turn a path seen in an error message into a project-relative one"""
    path = candidate.strip().replace("\\", "/")
    if path.startswith("file://"):
        path = path[len("file://") :]
    path = path.split("?", 1)[0]
    if path.startswith("@/"):
        path = "src/" + path[2:]
    # sandbox and dev-server prefixes: keep everything from the src directory on
    marker = path.find("/src/")
    if marker != -1 and (path.startswith("/") or re.match(r"^[A-Za-z]:/", path) or marker > 0):
        path = path[marker + 1 :]
    return normalize_block_path(path)


def locate_candidate(message: str) -> str | None:
    """First file path the heuristics can pull out of an error message"""
    for name, pattern in HEURISTICS:
        m = pattern.search(message)
        if m is None:
            continue
        candidate = normalize_path(m.group(1))
        if candidate:
            logger.info(f"[ErrorLocator] {name} heuristic matched {candidate}")
            return candidate
    for pattern in (_REACT_COMPONENT, _COMPONENT_MENTION):
        m = pattern.search(message)
        if m:
            candidate = f"src/components/{m.group(1)}.jsx"
            logger.info(f"[ErrorLocator] Component mention matched {candidate}")
            return candidate
    return None


def resolve_candidate(store: FileService, candidate: str | None) -> str | None:
    """Existing project file for a candidate, trying extensions and a src/ prefix"""
    if not candidate:
        return None
    bases = [candidate]
    if not candidate.startswith("src/"):
        bases.append(f"src/{candidate}")
    for base in bases:
        stem, ext = posixpath.splitext(base)
        options = [base] if ext else []
        options += [stem + e for e in SOURCE_EXTENSIONS]
        options += [f"{base}/index{e}" for e in SOURCE_EXTENSIONS]
        for option in options:
            if store.exists(option):
                return option

    # a guessed component may live in another directory
    stem = posixpath.splitext(posixpath.basename(candidate))[0]
    for path in store.list_files():
        name, ext = posixpath.splitext(posixpath.basename(path))
        if name == stem and ext in SOURCE_EXTENSIONS:
            return path
    return None


def _file_block(path: str, content: str) -> str:
    return f"File: {path}\n```\n{content.rstrip()}\n```\n"


def build_context_bundle(store: FileService, candidate: str | None) -> tuple[str | None, str]:
    """(resolved candidate path or None, context text for the fix prompt)"""
    resolved = resolve_candidate(store, candidate)
    if resolved is not None:
        return resolved, _file_block(resolved, store.read_file(resolved))

    blocks = []
    for path in ("package.json", *KEY_FILES):
        if store.exists(path):
            blocks.append(_file_block(path, store.read_file(path)))
    if not blocks:
        text_files = [p for p in store.list_files() if p.endswith(SOURCE_EXTENSIONS + (".json", ".html"))]
        for path in text_files[:FALLBACK_FILE_COUNT]:
            blocks.append(_file_block(path, store.read_file(path)))
    logger.info(f"[ErrorLocator] No candidate file; sending {len(blocks)} file(s) as context")
    return None, "\n".join(blocks)
