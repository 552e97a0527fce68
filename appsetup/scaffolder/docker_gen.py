"""Docker Compose and Dockerfile generation.

Produces a single ``docker-compose.yml`` at the project root with the
``backend``, ``frontend`` and ``postgres`` services, plus the Dockerfiles the
two build contexts need.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .templates import TemplateRenderer


class DockerGenerator:
    """Generates the container orchestration files for a project."""

    COMPOSE_TEMPLATE = "docker-compose.yml.j2"

    # Template name -> path relative to the project root
    _DOCKERFILES: dict[str, str] = {
        "backend/Dockerfile.j2": "backend/Dockerfile",
        "backend/requirements.txt.j2": "backend/requirements.txt",
        "frontend/Dockerfile.j2": "frontend/Dockerfile",
    }

    def __init__(self, renderer: TemplateRenderer) -> None:
        self.renderer = renderer

    async def generate_all(
        self,
        project_root: Path,
        context: dict[str, Any],
    ) -> dict[str, Path]:
        """Generate the compose manifest and the Dockerfiles.

        Returns:
            Mapping of descriptive name to written file path, e.g.
            ``{"compose": Path(".../docker-compose.yml"), ...}``.
        """
        result = {"compose": await self.generate_compose(project_root, context)}
        for path in await self.generate_dockerfiles(project_root, context):
            result[path.relative_to(project_root).as_posix()] = path
        return result

    async def generate_compose(self, project_root: Path, context: dict[str, Any]) -> Path:
        """Render ``docker-compose.yml`` into *project_root*."""
        return await self.renderer.render_to_file(
            self.COMPOSE_TEMPLATE, project_root / "docker-compose.yml", context
        )

    async def generate_dockerfiles(
        self,
        project_root: Path,
        context: dict[str, Any],
    ) -> list[Path]:
        """Render the backend and frontend build files."""
        written: list[Path] = []
        for template_name, output_name in self._DOCKERFILES.items():
            path = await self.renderer.render_to_file(
                template_name, project_root / output_name, context
            )
            written.append(path)
        return written
