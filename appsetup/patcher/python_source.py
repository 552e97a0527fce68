"""Structural patches for Python source files.

Django's generated ``settings.py`` and ``urls.py`` carry docstrings and
comments that mention the very statements a line search would look for
(``from django.urls import include, path`` appears in the ``urls.py``
docstring).  These helpers parse the file with :mod:`ast` and anchor on real
top-level statements instead, then splice text at the positions the parser
reports so that formatting and comments elsewhere survive untouched.  The
result must parse again before anything is written.
"""

from __future__ import annotations

import ast
import re
from pathlib import Path

from .engine import (
    AnchorNotFoundError,
    PatchError,
    PatchResult,
    PatchStatus,
    TargetMissingError,
    check_python_syntax,
    code_end,
    detect_newline,
    insert_before_close,
    leading_whitespace,
    read_text,
    split_lines,
    write_text,
)

_DEFAULT_INDENT = "    "


def ensure_import(
    path: str | Path,
    module: str,
    names: list[str],
    *,
    label: str = "",
) -> PatchResult:
    """Make sure ``from <module> import <names>`` is in effect at top level.

    Missing names are appended after the last name of the first existing
    ``from <module> import`` statement, single-line or parenthesised, keeping
    the names already there in their order.  Without such a statement a new
    one is added after the last top-level import, after the module
    docstring, or at the top of the file.
    """
    target, source, tree = _load(path)
    label = label or f"import {', '.join(names)} from {module}"

    imported: set[str] = set()
    candidate: ast.ImportFrom | None = None
    for node in tree.body:
        if isinstance(node, ast.ImportFrom) and node.module == module and node.level == 0:
            imported.update(alias.name for alias in node.names if alias.asname is None)
            if candidate is None:
                candidate = node

    missing = [name for name in dict.fromkeys(names) if name not in imported]
    if not missing or "*" in imported:
        return PatchResult(path=target, label=label, status=PatchStatus.ALREADY_APPLIED)

    newline = detect_newline(source)
    lines = split_lines(source)
    trailing_newline = source.endswith(("\n", "\r")) or not source

    if candidate is not None:
        last = candidate.names[-1]
        index = last.end_lineno - 1
        line = lines[index]
        col = _char_col(line, last.end_col_offset)
        lines[index] = line[:col] + "".join(f", {name}" for name in missing) + line[col:]
    else:
        statement = f"from {module} import {', '.join(missing)}"
        position = _import_insert_position(tree)
        if position == 0 and lines:
            lines[0:0] = [statement, ""]
        else:
            lines[position:position] = [statement]

    _write(target, lines, newline, trailing_newline)
    return PatchResult(path=target, label=label, status=PatchStatus.APPLIED)


def ensure_list_entry(
    path: str | Path,
    target_name: str,
    entry: str,
    *,
    marker: str | re.Pattern[str] | None = None,
    label: str = "",
) -> PatchResult:
    """Append *entry* to the list literal assigned to *target_name*.

    Detection looks only inside the list's own source: *marker* (a substring
    or compiled pattern, defaulting to *entry*) found there means the entry
    is already present.

    Raises:
        AnchorNotFoundError: no top-level ``<target_name> = [...]``.
    """
    target, source, tree = _load(path)
    label = label or f"add {entry} to {target_name}"

    node = _find_list_assignment(tree, target_name)
    if node is None:
        raise AnchorNotFoundError(target, f"{target_name} = [...]")

    segment = ast.get_source_segment(source, node) or ""
    check = marker if marker is not None else entry
    if isinstance(check, re.Pattern):
        present = check.search(segment) is not None
    else:
        present = check in segment
    if present:
        return PatchResult(path=target, label=label, status=PatchStatus.ALREADY_APPLIED)

    newline = detect_newline(source)
    lines = split_lines(source)
    trailing_newline = source.endswith(("\n", "\r")) or not source

    open_line = node.lineno - 1
    close_line = node.end_lineno - 1
    close_col = _char_col(lines[close_line], node.end_col_offset) - 1

    if node.elts and node.elts[-1].lineno - 1 > open_line:
        indent = leading_whitespace(lines[node.elts[-1].lineno - 1])
    else:
        indent = leading_whitespace(lines[open_line]) + _DEFAULT_INDENT

    if node.elts:
        comma_at = _separator_position(lines, node.elts[-1], close_line, close_col)
        if comma_at is not None:
            line_no, col = comma_at
            lines[line_no] = lines[line_no][:col] + "," + lines[line_no][col:]
            if line_no == close_line:
                close_col += 1

    lines = insert_before_close(
        lines, open_line, close_line, close_col, [f"{indent}{entry},"], separate=False
    )
    _write(target, lines, newline, trailing_newline)
    return PatchResult(path=target, label=label, status=PatchStatus.APPLIED)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load(path: str | Path) -> tuple[Path, str, ast.Module]:
    target = Path(path)
    if not target.is_file():
        raise TargetMissingError(target)
    source = read_text(target)
    try:
        tree = ast.parse(source, filename=str(target))
    except SyntaxError as exc:
        raise PatchError(target, f"cannot parse Python source: {exc.msg} (line {exc.lineno})") from exc
    return target, source, tree


def _write(target: Path, lines: list[str], newline: str, trailing_newline: bool) -> None:
    content = newline.join(lines)
    if trailing_newline:
        content += newline
    check_python_syntax(target, content)
    write_text(target, content)


def _find_list_assignment(tree: ast.Module, name: str) -> ast.List | None:
    for node in tree.body:
        value: ast.expr | None = None
        if isinstance(node, ast.Assign):
            if any(isinstance(t, ast.Name) and t.id == name for t in node.targets):
                value = node.value
        elif isinstance(node, ast.AnnAssign):
            if isinstance(node.target, ast.Name) and node.target.id == name:
                value = node.value
        if isinstance(value, ast.List):
            return value
    return None


def _separator_position(
    lines: list[str], last: ast.expr, close_line: int, close_col: int
) -> tuple[int, int] | None:
    """Where a comma must follow the last list element, or ``None`` if one does.

    Only closing parentheses, whitespace, commas and comments can sit between
    the element and the list's closing bracket; the comma goes right after
    the last code character.
    """
    start_line = last.end_lineno - 1
    start_col = _char_col(lines[start_line], last.end_col_offset)
    position = (start_line, start_col)
    for line_no in range(start_line, close_line + 1):
        line = lines[line_no]
        begin = start_col if line_no == start_line else 0
        end = close_col if line_no == close_line else len(line)
        gap = line[begin:end]
        for offset, char in enumerate(gap[:code_end(gap)]):
            if char == ",":
                return None
            if not char.isspace():
                position = (line_no, begin + offset + 1)
    return position


def _import_insert_position(tree: ast.Module) -> int:
    """Line index (0-based) where a new top-level import should go."""
    position = 0
    for node in tree.body:
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            position = node.end_lineno
    if position:
        return position
    if tree.body:
        first = tree.body[0]
        if (
            isinstance(first, ast.Expr)
            and isinstance(first.value, ast.Constant)
            and isinstance(first.value.value, str)
        ):
            return first.end_lineno
    return 0


def _char_col(line: str, byte_col: int) -> int:
    """Convert an ``ast`` UTF-8 byte offset into a ``str`` index."""
    return len(line.encode("utf-8")[:byte_col].decode("utf-8", errors="ignore"))
