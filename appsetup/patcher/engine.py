"""Idempotent text patching.

A ``TextPatch`` describes one logical change to a generated file: a detection
marker that says whether the change is already present, an anchor pattern
locating where it goes, the payload, and how the payload is placed relative
to the anchor.  ``apply_patch`` evaluates the marker first and only writes
when the change is missing, so applying the same patch any number of times
leaves the file as if it had been applied once.

Anchors are regular expressions searched line by line; the first matching
line in file order wins.  Lines are split on ``\\r\\n``, ``\\n`` and ``\\r``
only, the same breaks :mod:`ast` counts, so form feeds and other exotic
separators inside a line survive a patch unchanged.
"""

from __future__ import annotations

import ast
import re
import textwrap
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PatchError(Exception):
    """Raised when a patch cannot be applied to its target file."""

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{path}: {message}")


class TargetMissingError(PatchError):
    """The file a patch expects to edit does not exist."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(path, "file not found")


class AnchorNotFoundError(PatchError):
    """No line of the target matches the patch anchor.

    The target is left untouched.  This usually means the file no longer has
    the shape the patch was written for.
    """

    def __init__(self, path: str | Path, anchor: str, detail: str = "") -> None:
        self.anchor = anchor
        message = f"anchor not found: {anchor!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(path, message)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class InsertMode(str, Enum):
    """Where the payload goes relative to the anchor line."""

    BEFORE = "before"
    AFTER = "after"
    BLOCK_CLOSE = "block_close"
    REPLACE = "replace"


class PatchStatus(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"


class TextPatch(BaseModel):
    """A single idempotent edit.

    Attributes:
        label: Human readable description used in progress output.
        marker: Detection predicate.  A plain substring, or a regular
            expression (multi-line mode) when ``marker_is_regex`` is set.
        anchor: Regular expression searched on each line; first match wins.
        payload: Text to splice in.  A single trailing newline is ignored.
        mode: ``before``/``after`` insert the payload lines around the anchor
            line; ``replace`` swaps the anchor line for the payload
            re-indented to the anchor's indentation; ``block_close`` inserts
            the payload as the last entries of the bracketed block opened on
            the anchor line (the bracket ending the anchor match, or else
            the first one after it).
        match_indent: For ``before``/``after``, re-indent the payload to the
            anchor line's indentation instead of inserting it verbatim.
        comment_prefixes: Line comment openers of the target language.
            Brackets and separators after one of them are not code.
    """

    label: str = Field(default="")
    marker: str = Field(..., min_length=1)
    anchor: str = Field(..., min_length=1)
    payload: str
    mode: InsertMode = Field(default=InsertMode.AFTER)
    marker_is_regex: bool = Field(default=False)
    match_indent: bool = Field(default=False)
    comment_prefixes: tuple[str, ...] = Field(default=("#",))

    def is_applied(self, content: str) -> bool:
        """Evaluate the detection predicate against the full file content."""
        if self.marker_is_regex:
            return re.search(self.marker, content, flags=re.MULTILINE) is not None
        return self.marker in content


class PatchResult(BaseModel):
    """Outcome of applying one patch."""

    path: Path
    label: str = ""
    status: PatchStatus

    @property
    def applied(self) -> bool:
        return self.status is PatchStatus.APPLIED


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_patch(path: str | Path, patch: TextPatch) -> PatchResult:
    """Apply *patch* to the file at *path* unless it is already present.

    Python targets (``.py``) must still parse after the splice.

    Returns:
        A ``PatchResult`` with status ``applied`` or ``already_applied``.

    Raises:
        TargetMissingError: *path* does not exist.
        AnchorNotFoundError: the anchor (or its block) could not be located;
            the file is not modified.
        PatchError: the spliced content would not satisfy the marker, or
            would not be valid Python; the file is not modified.
    """
    target = Path(path)
    if not target.is_file():
        raise TargetMissingError(target)

    content = read_text(target)
    patched = patch_text(content, patch, target)
    if patched is None:
        return PatchResult(path=target, label=patch.label, status=PatchStatus.ALREADY_APPLIED)

    if target.suffix == ".py":
        check_python_syntax(target, patched)
    write_text(target, patched)
    return PatchResult(path=target, label=patch.label, status=PatchStatus.APPLIED)


def patch_text(content: str, patch: TextPatch, path: str | Path = "<text>") -> str | None:
    """Pure form of :func:`apply_patch`.

    Returns the patched content, or ``None`` when the marker is already
    present.
    """
    if patch.is_applied(content):
        return None

    newline = detect_newline(content)
    lines = split_lines(content)
    trailing_newline = content.endswith(("\n", "\r"))

    anchor_re = re.compile(patch.anchor)
    index, match = _find_anchor(lines, anchor_re)
    if match is None:
        raise AnchorNotFoundError(path, patch.anchor)

    payload_lines = split_lines(patch.payload.rstrip("\r\n"))

    if patch.mode is InsertMode.REPLACE:
        lines[index:index + 1] = _reindent(payload_lines, leading_whitespace(lines[index]))
    elif patch.mode is InsertMode.BLOCK_CLOSE:
        opener = _find_opener(lines[index], max(match.end() - 1, 0))
        if opener is None:
            raise AnchorNotFoundError(path, patch.anchor, "no opening bracket on anchor line")
        close = find_block_close(lines, index, opener, patch.comment_prefixes)
        if close is None:
            raise AnchorNotFoundError(path, patch.anchor, f"block opened on line {index + 1} is never closed")
        lines = insert_before_close(
            lines, index, close[0], close[1], payload_lines,
            comment_prefixes=patch.comment_prefixes,
        )
    else:
        if patch.match_indent:
            payload_lines = _reindent(payload_lines, leading_whitespace(lines[index]))
        position = index if patch.mode is InsertMode.BEFORE else index + 1
        lines[position:position] = payload_lines

    patched = newline.join(lines)
    if trailing_newline or not content:
        patched += newline
    if not patch.is_applied(patched):
        raise PatchError(path, f"payload does not satisfy marker {patch.marker!r}")
    return patched


# ---------------------------------------------------------------------------
# Helpers shared with the structural patches
# ---------------------------------------------------------------------------

_OPENERS = "([{"
_CLOSERS = ")]}"
_QUOTES = "'\"`"
_LINE_BREAK = re.compile(r"\r\n|\n|\r")


def read_text(path: Path) -> str:
    """Read a file without translating its line endings."""
    with open(path, encoding="utf-8", newline="") as fh:
        return fh.read()


def write_text(path: Path, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(content)


def detect_newline(content: str) -> str:
    return "\r\n" if "\r\n" in content else "\n"


def split_lines(content: str) -> list[str]:
    """Split on ``\\r\\n``, ``\\n`` and ``\\r``; a final line break adds no line."""
    lines = _LINE_BREAK.split(content)
    if lines[-1] == "":
        lines.pop()
    return lines


def leading_whitespace(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def check_python_syntax(path: str | Path, content: str) -> None:
    """Raise ``PatchError`` unless *content* parses as Python."""
    try:
        ast.parse(content, filename=str(path))
    except SyntaxError as exc:
        raise PatchError(
            path, f"patched source is not valid Python: {exc.msg} (line {exc.lineno})"
        ) from exc


def find_block_close(
    lines: list[str],
    start_line: int,
    start_col: int,
    comment_prefixes: tuple[str, ...] = ("#",),
) -> tuple[int, int] | None:
    """Locate the bracket closing the one at ``lines[start_line][start_col]``.

    Brackets inside single-line string literals and after a line comment
    opener are ignored.  Returns ``(line_index, column)`` of the closing
    bracket, or ``None``.
    """
    depth = 0
    for line_no in range(start_line, len(lines)):
        line = lines[line_no]
        col = start_col if line_no == start_line else 0
        quote = ""
        while col < len(line):
            char = line[col]
            if quote:
                if char == "\\":
                    col += 1
                elif char == quote:
                    quote = ""
            elif char in _QUOTES:
                quote = char
            elif _comment_at(line, col, comment_prefixes):
                break
            elif char in _OPENERS:
                depth += 1
            elif char in _CLOSERS:
                depth -= 1
                if depth == 0:
                    return line_no, col
            col += 1
    return None


def insert_before_close(
    lines: list[str],
    open_line: int,
    close_line: int,
    close_col: int,
    payload_lines: list[str],
    *,
    comment_prefixes: tuple[str, ...] = ("#",),
    separate: bool = True,
) -> list[str]:
    """Insert *payload_lines* as the last entries of a bracketed block.

    When the closing bracket sits alone on its line the payload goes right
    above it.  Otherwise the closing bracket is moved to a line of its own,
    indented like the line that opened the block.  With *separate*, a comma
    is added after the previous last entry when it lacks one, ahead of any
    trailing comment.
    """
    result = list(lines)
    head = result[close_line][:close_col]

    if close_line > open_line and not head.strip():
        prev = close_line - 1
        while prev > open_line and not result[prev][:code_end(result[prev], comment_prefixes)].strip():
            prev -= 1
        if separate and prev > open_line:
            result[prev] = _with_separator(result[prev], comment_prefixes)
        result[close_line:close_line] = payload_lines
        return result

    tail = result[close_line][close_col:]
    head = head.rstrip()
    opener_line = close_line == open_line
    if separate and head and not (opener_line and head[-1] in _OPENERS):
        head = _with_separator(head, comment_prefixes)
    indent = leading_whitespace(lines[open_line])
    result[close_line:close_line + 1] = [head, *payload_lines, indent + tail]
    return result


def code_end(line: str, comment_prefixes: tuple[str, ...] = ("#",)) -> int:
    """Index where the line comment of *line* starts, or ``len(line)``."""
    quote = ""
    col = 0
    while col < len(line):
        char = line[col]
        if quote:
            if char == "\\":
                col += 1
            elif char == quote:
                quote = ""
        elif char in _QUOTES:
            quote = char
        elif _comment_at(line, col, comment_prefixes):
            return col
        col += 1
    return len(line)


def _comment_at(line: str, col: int, comment_prefixes: tuple[str, ...]) -> bool:
    return any(line.startswith(prefix, col) for prefix in comment_prefixes)


def _with_separator(line: str, comment_prefixes: tuple[str, ...] = ("#",)) -> str:
    code = line[:code_end(line, comment_prefixes)].rstrip()
    if not code or code[-1] in ",([{":
        return line
    return code + "," + line[len(code):]


def _reindent(payload_lines: list[str], indent: str) -> list[str]:
    dedented = textwrap.dedent("\n".join(payload_lines)).split("\n")
    return [indent + line if line.strip() else line for line in dedented]


def _find_anchor(lines: list[str], anchor_re: re.Pattern[str]) -> tuple[int, re.Match[str] | None]:
    for index, line in enumerate(lines):
        match = anchor_re.search(line)
        if match:
            return index, match
    return -1, None


def _find_opener(line: str, start: int) -> int | None:
    for col in range(start, len(line)):
        if line[col] in _OPENERS:
            return col
    return None
