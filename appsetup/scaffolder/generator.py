"""Template emission for the Django + React + PostgreSQL project.

``ProjectGenerator`` writes every literal file the setup run needs.  It never
runs external tools and never edits existing files: files created by
``django-admin`` or ``create-vite`` are patched elsewhere, and each emission
here overwrites its target unconditionally.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from ..config import Config
from ..utils import ensure_dir
from .docker_gen import DockerGenerator
from .templates import TemplateRenderer


# ---------------------------------------------------------------------------
# File groups: template path -> output path relative to the project root
# ---------------------------------------------------------------------------

ENVIRONMENT_FILES: dict[str, str] = {
    "backend/environment.yml.j2": "backend/environment.yml",
}

API_FILES: dict[str, str] = {
    "backend/api/models.py.j2": "backend/api/models.py",
    "backend/api/views.py.j2": "backend/api/views.py",
    "backend/api/urls.py.j2": "backend/api/urls.py",
}

FRONTEND_FILES: dict[str, str] = {
    "frontend/index.html.j2": "frontend/index.html",
    "frontend/src/components/ItemList.jsx": "frontend/src/components/ItemList.jsx",
    "frontend/src/components/AddItem.jsx": "frontend/src/components/AddItem.jsx",
}

ACCOUNTS_FRONTEND_FILES: dict[str, str] = {
    "frontend/src/components/auth/Login.jsx": "frontend/src/components/auth/Login.jsx",
    "frontend/src/components/auth/Register.jsx": "frontend/src/components/auth/Register.jsx",
    "frontend/src/components/auth/PasswordReset.jsx": "frontend/src/components/auth/PasswordReset.jsx",
    "frontend/src/components/auth/PasswordResetConfirm.jsx": "frontend/src/components/auth/PasswordResetConfirm.jsx",
    "frontend/src/components/auth/PasswordResetComplete.jsx": "frontend/src/components/auth/PasswordResetComplete.jsx",
    "frontend/src/components/NavigationBar.jsx": "frontend/src/components/NavigationBar.jsx",
    "frontend/src/App.jsx": "frontend/src/App.jsx",
}

ACCOUNTS_TEMPLATE_PREFIX = "backend/accounts"


# ---------------------------------------------------------------------------
# Main generator
# ---------------------------------------------------------------------------


class ProjectGenerator:
    """Writes the literal files of the generated project.

    Given a ``Config``, emits:
    - the backend conda manifest and the ``api`` app (Item model, views, urls)
    - the frontend entry page and item components
    - the Docker Compose manifest and Dockerfiles
    - the ``accounts`` app (views, urls, registration templates)
    - the frontend auth components, navigation bar and ``App.jsx``
    """

    def __init__(self, config: Config, renderer: TemplateRenderer | None = None) -> None:
        self.config = config
        self.renderer = renderer or TemplateRenderer()
        self.docker_gen = DockerGenerator(self.renderer)

    @property
    def root(self) -> Path:
        return self.config.project_root

    # -- Public API --------------------------------------------------------

    async def create_directory_structure(self) -> list[Path]:
        """Create ``<project>/backend`` and ``<project>/frontend``."""
        dirs = [self.config.backend_dir, self.config.frontend_dir]
        return list(await asyncio.gather(*[asyncio.to_thread(ensure_dir, d) for d in dirs]))

    async def emit_environment(self) -> list[Path]:
        return await self._emit(ENVIRONMENT_FILES)

    async def emit_api(self) -> list[Path]:
        return await self._emit(API_FILES)

    async def emit_frontend(self) -> list[Path]:
        return await self._emit(FRONTEND_FILES)

    async def emit_docker(self) -> dict[str, Path]:
        return await self.docker_gen.generate_all(self.root, self.build_context())

    async def emit_accounts_backend(self) -> list[Path]:
        """Write the ``accounts`` app views, urls and HTML templates."""
        return await self.renderer.render_tree(
            ACCOUNTS_TEMPLATE_PREFIX,
            self.config.backend_dir / "accounts",
            self.build_context(),
        )

    async def emit_accounts_frontend(self) -> list[Path]:
        return await self._emit(ACCOUNTS_FRONTEND_FILES)

    # -- Context building --------------------------------------------------

    def build_context(self) -> dict[str, Any]:
        """Build the Jinja2 template context from the config."""
        return {
            "project_name": self.config.project_name,
            "env_name": self.config.env_name,
            "python_version": self.config.python_version,
            "title": "Django React App",
            "description": "Django React PostgreSQL App",
            "ports": self.config.ports.as_dict(),
            "database": self.config.database.model_dump(),
            # Inside compose the database is reached by its service name.
            "compose_database_url": self.config.database.url(
                self.config.ports.database, host="postgres"
            ),
        }

    # -- Internal ----------------------------------------------------------

    async def _emit(self, files: dict[str, str]) -> list[Path]:
        context = self.build_context()
        written: list[Path] = []
        for template_name, output_name in files.items():
            path = await self.renderer.render_to_file(template_name, self.root / output_name, context)
            written.append(path)
        return written
