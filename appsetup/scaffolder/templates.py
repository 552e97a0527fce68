"""Template emission for project scaffolding.

Provides the TemplateRenderer class which loads templates from the
``appsetup/scaffolder/templates/`` directory.  Files ending in ``.j2`` are
rendered through Jinja2 with project-specific context data; every other file
is a literal payload copied byte for byte (Django HTML templates and JSX
components carry ``{% %}``/``{{ }}`` syntax of their own).

Emission always creates or overwrites the output file.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

TEMPLATE_SUFFIX = ".j2"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates and copies literal template files.

    Template paths are always given relative to the template directory, with
    forward slashes (e.g. ``"backend/api/models.py.j2"``).
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    # -- Single template rendering -----------------------------------------

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Return the content *template_path* produces.

        ``.j2`` templates are rendered with *context*; anything else is read
        back unchanged.
        """
        if template_path.endswith(TEMPLATE_SUFFIX):
            template = self.env.get_template(template_path)
            return template.render(**context)
        return (self.template_dir / template_path).read_text(encoding="utf-8")

    # -- File-based rendering (async) --------------------------------------

    async def render_to_file(
        self,
        template_path: str,
        output_path: str | Path,
        context: dict[str, Any],
    ) -> Path:
        """Render a template and write the result to *output_path*.

        Parent directories are created automatically.  Returns the output
        path.
        """
        content = self.render(template_path, context)
        out = Path(output_path)
        await asyncio.to_thread(_write_file, out, content)
        return out

    async def render_tree(
        self,
        template_prefix: str,
        output_dir: str | Path,
        context: dict[str, Any],
    ) -> list[Path]:
        """Emit every file under *template_prefix* into *output_dir*.

        The directory structure is preserved and the ``.j2`` suffix is
        stripped: ``backend/accounts/templates/base.html`` rendered with
        ``template_prefix="backend/accounts"`` lands in
        ``<output_dir>/templates/base.html``.

        Returns:
            List of written file paths.
        """
        written: list[Path] = []
        out_base = Path(output_dir)
        strip = len(template_prefix.rstrip("/")) + 1

        for template_path in self.list_templates(template_prefix):
            output_file = out_base / output_name(template_path[strip:])
            path = await self.render_to_file(template_path, output_file, context)
            written.append(path)

        return written

    # -- Utility -----------------------------------------------------------

    def list_templates(self, prefix: str = "") -> list[str]:
        """Return a sorted list of all template paths under *prefix*."""
        search_dir = self.template_dir / prefix if prefix else self.template_dir
        if not search_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix()
            for p in search_dir.rglob("*")
            if p.is_file()
        )


def output_name(template_path: str) -> str:
    """Strip the ``.j2`` suffix from a template path, if present."""
    if template_path.endswith(TEMPLATE_SUFFIX):
        return template_path[: -len(TEMPLATE_SUFFIX)]
    return template_path


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
