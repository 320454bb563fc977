"""
Bracket / Tag Balance Checker - structural checks for generated component files

A single pass over the buffer keeps one stack of frames:

* bracket frames for ``(``, ``[`` and ``{`` in JavaScript context
* attribute frames between ``<Name`` and the ``>`` that ends an opening tag
* element frames while inside JSX children
* a group frame around JSX returned without parentheses

String literals, template literals, regex literals and comments are skipped
in JavaScript context. Inside JSX children, quotes and parentheses are plain
text; only ``{`` and ``<`` are significant there.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

BRACKET = "bracket"
ATTRS = "attrs"
ELEMENT = "element"
GROUP = "group"  # JSX returned without parentheses; never reported as unclosed

PAIRS = {")": "(", "]": "[", "}": "{"}
CLOSERS = {"(": ")", "[": "]", "{": "}"}

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    }
)

# Characters after which a ``<`` starts a JSX element rather than a comparison
_EXPRESSION_PUNCT = frozenset("(,=:?&|[{};!>")
_EXPRESSION_KEYWORD = re.compile(r"(?:^|[^\w$.])(?:return|yield|default)$")
_RETURN_KEYWORD = re.compile(r"(?:^|[^\w$.])return$")
# Characters after which a ``/`` starts a regex literal rather than a division
_REGEX_PUNCT = frozenset("(,=:?&|[{};!+-*%>~^")
_TAG_NAME = re.compile(r"[A-Za-z_$][\w$.:-]*")


@dataclass
class Frame:
    """One open construct on the scanner stack"""

    kind: str
    value: str  # bracket character or tag name ("" for a fragment)
    start: int
    after_return: bool = False
    roots: int = 0  # JSX elements opened directly inside a "(" or group frame
    other: bool = False  # anything but JSX seen directly inside a "(" frame

    def holds_roots(self) -> bool:
        return self.kind == GROUP or (self.kind == BRACKET and self.value == "(")

    def closer(self) -> str:
        if self.kind == BRACKET:
            return CLOSERS[self.value]
        return f"</{self.value}>"


@dataclass
class ScanReport:
    """Result of scanning one buffer"""

    length: int
    bracket_mismatch: int | None = None  # index of the first unmatched closing bracket
    tag_mismatch: tuple[int, int] | None = None  # span of the first unmatched closing tag
    unclosed: list[Frame] = field(default_factory=list)
    incomplete_at: int | None = None  # start of a construct cut off by the end of input
    open_literal: str | None = None
    wrap_ranges: list[tuple[int, int]] = field(default_factory=list)

    @property
    def balanced(self) -> bool:
        return (
            self.bracket_mismatch is None
            and self.open_literal is None
            and not any(f.kind == BRACKET for f in self.unclosed)
        )

    @property
    def closed(self) -> bool:
        return self.tag_mismatch is None and not any(f.kind != BRACKET for f in self.unclosed)

    @property
    def ok(self) -> bool:
        return self.balanced and self.closed

    @property
    def open_brackets(self) -> list[str]:
        return [f.value for f in self.unclosed if f.kind == BRACKET]

    @property
    def open_tags(self) -> list[str]:
        return [f.value for f in self.unclosed if f.kind != BRACKET]


class _Scanner:
    def __init__(self, text: str):
        self.text = text
        self.n = len(text)
        self.stack: list[Frame] = []
        self.prev_sig = -1  # index of the last significant character
        self.report = ScanReport(length=self.n)

    # ---------- helpers ----------

    def _prev_char(self) -> str:
        return self.text[self.prev_sig] if self.prev_sig >= 0 else ""

    def _after_keyword(self, keyword: re.Pattern = _EXPRESSION_KEYWORD) -> bool:
        if self.prev_sig < 0:
            return False
        window = self.text[max(0, self.prev_sig - 8) : self.prev_sig + 1]
        return bool(keyword.search(window))

    def _expression_position(self) -> bool:
        prev = self._prev_char()
        return prev == "" or prev in _EXPRESSION_PUNCT or self._after_keyword()

    def _mark_other(self) -> None:
        top = self.stack[-1] if self.stack else None
        if top is not None and top.kind == BRACKET and top.value == "(":
            top.other = True

    def _incomplete(self, index: int, literal: str | None = None) -> int:
        if self.report.incomplete_at is None or index < self.report.incomplete_at:
            self.report.incomplete_at = index
        if literal is not None:
            self.report.open_literal = literal
        return self.n

    def _skip_quoted(self, i: int) -> int:
        quote = self.text[i]
        j = i + 1
        while j < self.n:
            c = self.text[j]
            if c == "\\":
                j += 2
                continue
            if c == quote:
                return j + 1
            if c == "\n":
                # unterminated single-line string; JSX text apostrophes end up here
                return j
            j += 1
        return self._incomplete(i, quote)

    def _skip_template(self, i: int) -> int:
        j = i + 1
        depth = 0
        while j < self.n:
            c = self.text[j]
            if c == "\\":
                j += 2
                continue
            if depth == 0 and c == "`":
                return j + 1
            if c == "$" and j + 1 < self.n and self.text[j + 1] == "{":
                depth += 1
                j += 2
                continue
            if depth > 0:
                if c == "}":
                    depth -= 1
                elif c == "{":
                    depth += 1
                elif c == "`":
                    j = self._skip_template(j)
                    continue
                elif c in "'\"":
                    j = self._skip_quoted(j)
                    continue
            j += 1
        return self._incomplete(i, "`")

    def _skip_regex(self, i: int) -> int:
        j = i + 1
        in_class = False
        while j < self.n:
            c = self.text[j]
            if c == "\\":
                j += 2
                continue
            if c == "\n":
                return j
            if in_class:
                if c == "]":
                    in_class = False
            elif c == "[":
                in_class = True
            elif c == "/":
                j += 1
                while j < self.n and (self.text[j].isalnum()):
                    j += 1
                return j
            j += 1
        return self.n

    def _open_tag(self, i: int) -> int:
        """``self.text[i] == '<'`` opening an element; push its attribute frame."""
        top = self.stack[-1] if self.stack else None
        if top is not None and top.holds_roots():
            top.roots += 1
        if self.text[i + 1] == ">":
            self.stack.append(Frame(ELEMENT, "", i))
            self.prev_sig = i + 1
            return i + 2
        m = _TAG_NAME.match(self.text, i + 1)
        self.stack.append(Frame(ATTRS, m.group(0), i))
        self.prev_sig = m.end() - 1
        return m.end()

    def _close_tag(self, i: int) -> int:
        """``self.text[i:i+2] == '</'``; match it against the stack."""
        j = i + 2
        m = _TAG_NAME.match(self.text, j)
        name = m.group(0) if m else ""
        j = m.end() if m else j
        while j < self.n and self.text[j] in " \t\r\n":
            j += 1
        if j >= self.n:
            return self._incomplete(i)
        if self.text[j] != ">":
            # not a closing tag after all
            self.prev_sig = i
            return i + 1
        end = j + 1
        self.prev_sig = j
        top = self.stack[-1] if self.stack else None
        if top is not None and top.kind == ELEMENT and top.value == name:
            self.stack.pop()
            return end
        if self.report.tag_mismatch is None:
            self.report.tag_mismatch = (i, end)
        # recover when the name matches an element further down with only elements above it
        for depth in range(len(self.stack) - 1, -1, -1):
            frame = self.stack[depth]
            if frame.kind != ELEMENT:
                break
            if frame.value == name:
                del self.stack[depth:]
                break
        return end

    def _close_bracket(self, i: int, c: str) -> int:
        top = self.stack[-1] if self.stack else None
        if top is not None and top.kind == BRACKET and top.value == PAIRS[c]:
            self.stack.pop()
            if top.value == "(" and top.after_return and top.roots > 1 and not top.other:
                self.report.wrap_ranges.append((top.start + 1, i))
        elif self.report.bracket_mismatch is None:
            self.report.bracket_mismatch = i
        self.prev_sig = i
        return i + 1

    # ---------- per-context steps ----------

    def _end_group(self) -> None:
        group = self.stack.pop()
        if group.roots > 1:
            self.report.wrap_ranges.append((group.start, self.prev_sig + 1))

    def _step_code(self, i: int) -> int:
        text = self.text
        c = text[i]
        nxt = text[i + 1] if i + 1 < self.n else ""
        if c in " \t\r\n":
            return i + 1
        if c == "/" and nxt == "/":
            end = text.find("\n", i)
            return self.n if end == -1 else end
        if c == "/" and nxt == "*":
            end = text.find("*/", i + 2)
            if end == -1:
                return self._incomplete(i, "/*")
            return end + 2
        opens_tag = c == "<" and (nxt == ">" or nxt.isalpha() or nxt in "_$")
        if self.stack and self.stack[-1].kind == GROUP:
            if opens_tag:
                return self._open_tag(i)
            # the returned expression ended; reprocess this character outside the group
            self._end_group()
            return i
        if opens_tag and self._after_keyword(_RETURN_KEYWORD):
            self.stack.append(Frame(GROUP, "", i))
            return self._open_tag(i)
        if c in "([{":
            self._mark_other()
            after_return = c == "(" and self._after_keyword()
            self.stack.append(Frame(BRACKET, c, i, after_return=after_return))
            self.prev_sig = i
            return i + 1
        if c in ")]}":
            return self._close_bracket(i, c)
        if c == "<":
            if nxt == "/" and self._prev_char() == ">":
                return self._close_tag(i)
            if opens_tag and self._expression_position():
                return self._open_tag(i)
        self._mark_other()
        if c in "'\"":
            end = self._skip_quoted(i)
            self.prev_sig = min(end, self.n) - 1
            return end
        if c == "`":
            end = self._skip_template(i)
            self.prev_sig = min(end, self.n) - 1
            return end
        if c == "/" and (self._prev_char() == "" or self._prev_char() in _REGEX_PUNCT):
            end = self._skip_regex(i)
            self.prev_sig = min(end, self.n) - 1
            return end
        self.prev_sig = i
        return i + 1

    def _step_attrs(self, i: int) -> int:
        text = self.text
        c = text[i]
        if c in "\"'":
            end = text.find(c, i + 1)
            if end == -1:
                return self._incomplete(i, c)
            self.prev_sig = end
            return end + 1
        if c == "{":
            self.stack.append(Frame(BRACKET, "{", i))
            self.prev_sig = i
            return i + 1
        if c == "/" and i + 1 < self.n and text[i + 1] == ">":
            self.stack.pop()
            self.prev_sig = i + 1
            return i + 2
        if c == ">":
            frame = self.stack.pop()
            if not (frame.value.islower() and frame.value in VOID_ELEMENTS):
                self.stack.append(Frame(ELEMENT, frame.value, frame.start))
            self.prev_sig = i
            return i + 1
        if not c.isspace():
            self.prev_sig = i
        return i + 1

    def _step_children(self, i: int) -> int:
        text = self.text
        c = text[i]
        nxt = text[i + 1] if i + 1 < self.n else ""
        if c == "{":
            self.stack.append(Frame(BRACKET, "{", i))
            self.prev_sig = i
            return i + 1
        if c == "<":
            if nxt == "/":
                return self._close_tag(i)
            if nxt == ">" or nxt.isalpha() or nxt in "_$":
                return self._open_tag(i)
        if c == "}" and self.report.bracket_mismatch is None:
            self.report.bracket_mismatch = i
        if not c.isspace():
            self.prev_sig = i
        return i + 1

    def run(self) -> ScanReport:
        i = 0
        while i < self.n:
            top = self.stack[-1] if self.stack else None
            if top is None or top.kind in (BRACKET, GROUP):
                i = self._step_code(i)
            elif top.kind == ATTRS:
                i = self._step_attrs(i)
            else:
                i = self._step_children(i)
        if self.stack and self.stack[-1].kind == GROUP:
            self._end_group()
        for frame in self.stack:
            if frame.kind == ATTRS:
                self._incomplete(frame.start)
                break
        self.report.unclosed = [f for f in self.stack if f.kind != GROUP]
        return self.report


def scan(text: str) -> ScanReport:
    """Scan a buffer and report bracket and tag structure."""
    return _Scanner(text).run()


def is_balanced(text: str) -> bool:
    """True when every bracket outside literals and comments is matched."""
    return scan(text).balanced


def tags_closed(text: str) -> bool:
    """True when every non-void, non-self-closing JSX element is closed."""
    return scan(text).closed


def closing_suffix(report: ScanReport) -> str | None:
    """Closers for everything left open, innermost first.

    Only defined when nothing was mismatched and the input was not cut in the
    middle of a literal or tag; otherwise appending cannot fix the buffer.
    """
    if report.bracket_mismatch is not None or report.tag_mismatch is not None:
        return None
    if report.incomplete_at is not None:
        return None
    return "\n".join(frame.closer() for frame in reversed(report.unclosed))


def count_brace_deficit(text: str) -> int:
    """Number of ``{`` without a matching ``}`` (raw count)."""
    return text.count("{") - text.count("}")
