"""
Diff Generator Service - Unified diffs between streamed and repaired file content
"""

from __future__ import annotations

from difflib import SequenceMatcher, unified_diff

from weblisite.models.diff import DiffHunk, DiffResult


class DiffGenerator:
    """Generate unified diffs for repaired files"""

    def generate_diff(
        self,
        original_content: str,
        new_content: str,
        file_path: str,
    ) -> DiffResult:
        """Generate structured diff from pre-repair and repaired content"""
        original_lines = original_content.splitlines(keepends=True)
        new_lines = new_content.splitlines(keepends=True)

        # Ensure last lines have newlines for proper diff
        if original_lines and not original_lines[-1].endswith("\n"):
            original_lines[-1] += "\n"
        if new_lines and not new_lines[-1].endswith("\n"):
            new_lines[-1] += "\n"

        unified = list(
            unified_diff(
                original_lines,
                new_lines,
                fromfile=f"a/{file_path}",
                tofile=f"b/{file_path}",
            )
        )

        hunks = self._extract_hunks(original_lines, new_lines)

        return DiffResult(
            file_path=file_path,
            hunks=hunks,
            unified_diff="".join(unified),
            lines_added=sum(1 for line in unified if line.startswith("+") and not line.startswith("+++")),
            lines_removed=sum(1 for line in unified if line.startswith("-") and not line.startswith("---")),
        )

    def _extract_hunks(
        self,
        original: list[str],
        modified: list[str],
    ) -> list[DiffHunk]:
        """Extract individual change hunks from diff"""
        matcher = SequenceMatcher(None, original, modified)
        hunks = []

        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag == "equal":
                continue

            change_type = "add" if tag == "insert" else "delete" if tag == "delete" else "modify"

            hunks.append(
                DiffHunk(
                    start_line=i1 + 1,
                    end_line=i2,
                    removed="".join(original[i1:i2]),
                    added="".join(modified[j1:j2]),
                    change_type=change_type,
                )
            )

        return hunks
