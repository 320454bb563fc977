"""
Syntax Repair Engine - shared validation service for generated files

``SyntaxValidationService.validate`` is the one place where generated content
is checked and rewritten. The generation pipeline calls it for every
completed file and the file store calls it again on every write; because the
passes are idempotent the second call is a no-op on validated content.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from enum import Enum
from typing import Any

from weblisite.models.generation import DiagnosticKind, ValidationDiagnostic, ValidationResult
from weblisite.services.balance import ScanReport, closing_suffix, count_brace_deficit, scan
from weblisite.services.diff_generator import DiffGenerator
from weblisite.services.reconstructor import TemplateReconstructor, component_name, is_reconstructed

logger = logging.getLogger(__name__)

BASELINE_DEPENDENCIES = {
    "react": "^18.2.0",
    "react-dom": "^18.2.0",
    "react-router-dom": "^6.10.0",
}

MANIFEST_NAME = "package.json"
ENTRY_POINT_NAMES = ("main.jsx", "main.tsx", "main.js", "main.ts")
COMPONENT_EXTENSIONS = (".jsx", ".tsx")
SCRIPT_EXTENSIONS = (".js", ".ts", ".mjs", ".cjs")

# A truncated tail longer than this is not cut away before appending closers
MAX_DANGLING_LINES = 10
MAX_REPAIR_ROUNDS = 8

ENTRY_POINT_TEMPLATE = """import React from 'react';
import ReactDOM from 'react-dom/client';
import { BrowserRouter } from 'react-router-dom';
import App from './App';
import './index.css';

ReactDOM.createRoot(document.getElementById('root')).render(
  <React.StrictMode>
    <BrowserRouter>
      <App />
    </BrowserRouter>
  </React.StrictMode>
);
"""

_LANGUAGE_TAG = re.compile(
    r"^\s*(jsx|tsx|javascript|js|typescript|ts|css|html|json)[ \t]*\r?\n", re.IGNORECASE
)
_ROOT_MOUNT = re.compile(r"createRoot\s*\([\s\S]*?\)\s*\.\s*render\s*\(")
_DEFAULT_EXPORT = re.compile(r"^\s*export\s+default\b|\bas\s+default\b", re.MULTILINE)
_NAMED_EXPORT = re.compile(r"^\s*export\s+(?:const|let|function|class|async\s+function)\b", re.MULTILINE)
_FUNCTION_COMPONENT = re.compile(r"^\s*(?:export\s+)?(?:async\s+)?function\s+([A-Z]\w*)\s*[(<]", re.MULTILINE)
_CONST_COMPONENT = re.compile(
    r"^\s*(?:export\s+)?const\s+([A-Z]\w*)\s*(?::\s*[^=\n]+)?=\s*"
    r"(?:\(|function\b|async\b|(?:React\.)?(?:memo|forwardRef)\b|\w+\s*=>)",
    re.MULTILINE,
)
_CLOSED_SELF_CLOSING = re.compile(r"</([A-Za-z][\w.]*)>\s*/>")
_PAREN_AFTER_TAG = re.compile(r">\s*(\))(?!\s*[,;])")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


class ReconstructionPolicy(str, Enum):
    """When a component file is rebuilt from the template

    ``structural`` rebuilds only files that still fail the balance checks after
    repair. ``strict`` also rebuilds component files without a default export.
    ``always`` rebuilds every component file.
    """

    STRUCTURAL = "structural"
    STRICT = "strict"
    ALWAYS = "always"


def strip_language_tag(content: str) -> tuple[str, str | None]:
    """Drop leading lines that hold nothing but a fence language tag."""
    tag = None
    while True:
        m = _LANGUAGE_TAG.match(content)
        if m is None:
            return content, tag
        tag = m.group(1)
        content = content[m.end() :]


def has_default_export(content: str) -> bool:
    return bool(_DEFAULT_EXPORT.search(content))


def find_component_name(path: str, content: str) -> str | None:
    """Name of the component a default export should point at, if any"""
    functions = _FUNCTION_COMPONENT.findall(content)
    constants = _CONST_COMPONENT.findall(content)
    stem_name = component_name(path)
    if stem_name in functions or stem_name in constants:
        return stem_name
    if functions:
        return functions[0]
    if constants:
        return constants[0]
    return None


class SyntaxValidationService:
    """Validate and repair generated files"""

    def __init__(
        self,
        policy: ReconstructionPolicy = ReconstructionPolicy.STRICT,
        baseline_dependencies: dict[str, str] | None = None,
        reconstructor: TemplateReconstructor | None = None,
    ):
        self.policy = ReconstructionPolicy(policy)
        self.baseline_dependencies = dict(
            BASELINE_DEPENDENCIES if baseline_dependencies is None else baseline_dependencies
        )
        self.reconstructor = reconstructor or TemplateReconstructor()
        self.diff_generator = DiffGenerator()

    # ========== Classification ==========

    @staticmethod
    def is_manifest(path: str) -> bool:
        return posixpath.basename(path) == MANIFEST_NAME

    @staticmethod
    def is_entry_point(path: str) -> bool:
        return posixpath.basename(path) in ENTRY_POINT_NAMES

    @staticmethod
    def is_component(path: str) -> bool:
        return path.lower().endswith(COMPONENT_EXTENSIONS) and not SyntaxValidationService.is_entry_point(path)

    @staticmethod
    def is_script(path: str) -> bool:
        return path.lower().endswith(SCRIPT_EXTENSIONS) and not SyntaxValidationService.is_entry_point(path)

    # ========== Entry ==========

    def validate(self, path: str, content: str) -> ValidationResult:
        """Run the ordered repair passes; never raises."""
        diagnostics: list[ValidationDiagnostic] = []
        reconstructed = False
        try:
            repaired, tag = strip_language_tag(content)
            if tag is not None:
                diagnostics.append(
                    ValidationDiagnostic(
                        kind=DiagnosticKind.LANGUAGE_TAG,
                        message=f"Removed leading language tag '{tag}'",
                        auto_fixed=True,
                    )
                )

            if self.is_manifest(path):
                repaired = self._repair_manifest(repaired, diagnostics)
            elif self.is_entry_point(path):
                repaired = self._repair_entry_point(path, repaired, diagnostics)
            elif self.is_component(path):
                repaired, reconstructed = self._repair_component(path, repaired, diagnostics)
            elif self.is_script(path):
                repaired = self._repair_script(repaired, diagnostics)
        except Exception as e:
            logger.exception(f"[Repair] Repair of {path} failed; keeping content as generated")
            return ValidationResult(
                path=path,
                original=content,
                content=content,
                diagnostics=[
                    ValidationDiagnostic(
                        kind=DiagnosticKind.REPAIR_FAILED,
                        message=f"Repair failed: {e}",
                    )
                ],
            )

        result = ValidationResult(
            path=path,
            original=content,
            content=repaired,
            diagnostics=diagnostics,
            reconstructed=reconstructed,
        )
        if result.changed:
            result.diff = self.diff_generator.generate_diff(content, repaired, path)
            logger.info(
                f"[Repair] {path}: {len(diagnostics)} finding(s), "
                f"+{result.diff.lines_added}/-{result.diff.lines_removed} lines"
            )
        return result

    # ========== Manifest ==========

    def _parse_manifest(self, content: str) -> tuple[Any, bool]:
        """Parse, trying the appended-closers and trailing-comma repairs in turn"""
        candidates = [content]
        deficit = count_brace_deficit(content)
        if deficit > 0:
            candidates.append(content.rstrip() + "\n" + "}" * deficit)
        for index, candidate in enumerate(candidates):
            for text in (candidate, _TRAILING_COMMA.sub(r"\1", candidate)):
                try:
                    return json.loads(text), index > 0 or text != candidate
                except json.JSONDecodeError:
                    continue
        raise ValueError("unparseable")

    def _repair_manifest(self, content: str, diagnostics: list[ValidationDiagnostic]) -> str:
        try:
            data, repaired = self._parse_manifest(content)
        except ValueError:
            data, repaired = None, False
        if not isinstance(data, dict):
            diagnostics.append(
                ValidationDiagnostic(
                    kind=DiagnosticKind.MANIFEST_PARSE_ERROR,
                    message="package.json could not be parsed; kept as generated",
                )
            )
            return content
        if repaired:
            diagnostics.append(
                ValidationDiagnostic(
                    kind=DiagnosticKind.MANIFEST_PARSE_ERROR,
                    message="package.json was malformed and has been repaired",
                    auto_fixed=True,
                )
            )

        dependencies = data.get("dependencies")
        if not isinstance(dependencies, dict):
            dependencies = {}
            data["dependencies"] = dependencies
        missing = [name for name in self.baseline_dependencies if name not in dependencies]
        for name in missing:
            dependencies[name] = self.baseline_dependencies[name]
        if missing:
            diagnostics.append(
                ValidationDiagnostic(
                    kind=DiagnosticKind.MANIFEST_DEPENDENCIES,
                    message=f"Added baseline dependencies: {', '.join(missing)}",
                    auto_fixed=True,
                )
            )
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    # ========== Entry point ==========

    def _repair_entry_point(self, path: str, content: str, diagnostics: list[ValidationDiagnostic]) -> str:
        if _ROOT_MOUNT.search(content) and scan(content).ok:
            return content
        template = ENTRY_POINT_TEMPLATE
        if path.endswith((".tsx", ".ts")):
            template = template.replace("getElementById('root')", "getElementById('root')!")
        diagnostics.append(
            ValidationDiagnostic(
                kind=DiagnosticKind.ENTRY_POINT_TEMPLATE,
                message="Entry point did not mount the app; replaced with the standard template",
                auto_fixed=True,
            )
        )
        return template

    # ========== Brackets and tags ==========

    def _drop_dangling_tail(self, content: str, report: ScanReport) -> str | None:
        """Cut a construct the stream ended in the middle of, when it is short"""
        if report.incomplete_at is None:
            return None
        if report.bracket_mismatch is not None or report.tag_mismatch is not None:
            return None
        if content[report.incomplete_at :].count("\n") > MAX_DANGLING_LINES:
            return None
        return content[: report.incomplete_at]

    def _close_open_frames(self, content: str, diagnostics: list[ValidationDiagnostic]) -> str:
        """Append closers for whatever is still open (pass a)"""
        report = scan(content)
        if report.ok:
            return content
        trimmed = self._drop_dangling_tail(content, report)
        if trimmed is not None:
            content = trimmed
            report = scan(content)
        suffix = closing_suffix(report)
        if suffix:
            diagnostics.append(
                ValidationDiagnostic(
                    kind=DiagnosticKind.UNCLOSED_TAG if report.open_tags else DiagnosticKind.UNBALANCED_BRACKETS,
                    message=f"Appended missing closers: {suffix.replace(chr(10), ' ')}",
                    auto_fixed=True,
                )
            )
            return content.rstrip() + "\n" + suffix + "\n"
        if suffix is None:
            deficit = count_brace_deficit(content)
            if deficit > 0:
                diagnostics.append(
                    ValidationDiagnostic(
                        kind=DiagnosticKind.UNBALANCED_BRACKETS,
                        message=f"Appended {deficit} missing closing brace(s)",
                        auto_fixed=True,
                    )
                )
                return content.rstrip() + "\n" + "}" * deficit + "\n"
        return content

    @staticmethod
    def _stray_paren(content: str, at: int) -> int | None:
        """Offset of the ')' to drop for an unmatched ')' at ``at``, if any"""
        if content[at] != ")":
            return None
        if content[:at].rstrip().endswith(">"):
            return at
        # `</div>)\n  );`: the paren glued to the tag is the extra one
        candidates = [m.start(1) for m in _PAREN_AFTER_TAG.finditer(content, 0, at)]
        return candidates[-1] if candidates else None

    def _remove_mismatches(self, content: str, diagnostics: list[ValidationDiagnostic]) -> str:
        """Drop stray parentheses and duplicated closing tags (passes b and c)"""
        for _ in range(MAX_REPAIR_ROUNDS):
            report = scan(content)
            if report.bracket_mismatch is not None:
                stray = self._stray_paren(content, report.bracket_mismatch)
                if stray is not None:
                    content = content[:stray] + content[stray + 1 :]
                    diagnostics.append(
                        ValidationDiagnostic(
                            kind=DiagnosticKind.STRAY_PARENTHESIS,
                            message="Removed stray ')' after a closing tag",
                            auto_fixed=True,
                        )
                    )
                    continue
            if report.tag_mismatch is not None:
                start, end = report.tag_mismatch
                closing = content[start:end]
                before = content[:start].rstrip()
                if before.endswith(closing):
                    content = before + content[end:]
                    diagnostics.append(
                        ValidationDiagnostic(
                            kind=DiagnosticKind.DUPLICATE_CLOSING_TAG,
                            message=f"Removed duplicated {closing}",
                            auto_fixed=True,
                        )
                    )
                    continue
            if not report.closed and _CLOSED_SELF_CLOSING.search(content):
                content = _CLOSED_SELF_CLOSING.sub("/>", content)
                diagnostics.append(
                    ValidationDiagnostic(
                        kind=DiagnosticKind.DUPLICATE_CLOSING_TAG,
                        message="Rewrote closing tag followed by '/>' as a self-closing tag",
                        auto_fixed=True,
                    )
                )
                continue
            break
        return content

    def _wrap_sibling_roots(self, content: str, diagnostics: list[ValidationDiagnostic]) -> str:
        """Wrap returned sibling JSX roots in one container (pass d)"""
        report = scan(content)
        if not report.wrap_ranges:
            return content
        for start, end in sorted(report.wrap_ranges, reverse=True):
            inner = content[start:end]
            lead = inner[: len(inner) - len(inner.lstrip())]
            trail = inner[len(inner.rstrip()) :]
            content = content[:start] + f"{lead}<div>\n{inner.strip()}\n</div>{trail}" + content[end:]
        diagnostics.append(
            ValidationDiagnostic(
                kind=DiagnosticKind.ADJACENT_ROOTS,
                message=f"Wrapped {len(report.wrap_ranges)} multi-root return(s) in <div>",
                auto_fixed=True,
            )
        )
        return content

    def _ensure_default_export(self, path: str, content: str, diagnostics: list[ValidationDiagnostic]) -> str:
        """Append ``export default Name;`` when it is missing (pass e)"""
        if has_default_export(content):
            return content
        name = find_component_name(path, content)
        if name is None:
            return content
        diagnostics.append(
            ValidationDiagnostic(
                kind=DiagnosticKind.MISSING_EXPORT,
                message=f"Added default export for {name}",
                auto_fixed=True,
            )
        )
        return content.rstrip() + f"\n\nexport default {name};\n"

    # ========== Components and scripts ==========

    def _repair_component(
        self, path: str, content: str, diagnostics: list[ValidationDiagnostic]
    ) -> tuple[str, bool]:
        source = content
        repaired = self._close_open_frames(content, diagnostics)
        if not scan(repaired).ok:
            repaired = self._remove_mismatches(repaired, diagnostics)
            repaired = self._close_open_frames(repaired, diagnostics)
        repaired = self._wrap_sibling_roots(repaired, diagnostics)
        repaired = self._ensure_default_export(path, repaired, diagnostics)

        if not self._needs_reconstruction(repaired):
            return repaired, False

        report = scan(repaired)
        if not report.ok:
            diagnostics.append(
                ValidationDiagnostic(
                    kind=DiagnosticKind.UNCLOSED_TAG if not report.closed else DiagnosticKind.UNBALANCED_BRACKETS,
                    message="Structure could not be repaired",
                )
            )
        elif not has_default_export(repaired):
            diagnostics.append(
                ValidationDiagnostic(
                    kind=DiagnosticKind.MISSING_EXPORT,
                    message="No component found to export",
                )
            )
        rebuilt = self.reconstructor.rebuild(path, source)
        diagnostics.append(
            ValidationDiagnostic(
                kind=DiagnosticKind.RECONSTRUCTED,
                message=f"Rebuilt {path} from the component template; the generated body was discarded",
                auto_fixed=True,
            )
        )
        return rebuilt, True

    def _needs_reconstruction(self, content: str) -> bool:
        if not scan(content).ok:
            return True
        if is_reconstructed(content):
            return False
        if self.policy == ReconstructionPolicy.ALWAYS:
            return True
        if self.policy == ReconstructionPolicy.STRICT:
            # modules that only export named bindings are not components
            return not has_default_export(content) and not _NAMED_EXPORT.search(content)
        return False

    def _repair_script(self, content: str, diagnostics: list[ValidationDiagnostic]) -> str:
        repaired = self._close_open_frames(content, diagnostics)
        report = scan(repaired)
        if not report.balanced:
            diagnostics.append(
                ValidationDiagnostic(
                    kind=DiagnosticKind.UNBALANCED_BRACKETS,
                    message="Brackets are still unbalanced after repair",
                )
            )
        return repaired
