"""Tests for Docker Compose file generation.

Covers:
- docker-compose.yml services and port mappings
- Backend/frontend Dockerfile and requirements generation
- Calls made to the renderer
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from appsetup.config import Config
from appsetup.scaffolder.docker_gen import DockerGenerator
from appsetup.scaffolder.generator import ProjectGenerator
from appsetup.scaffolder.templates import TemplateRenderer


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_renderer() -> MagicMock:
    """A mock TemplateRenderer that tracks render_to_file calls."""
    renderer = MagicMock(spec=TemplateRenderer)

    async def mock_render_to_file(template_path: str, output_path, context):
        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(f"# Rendered from {template_path}\n", encoding="utf-8")
        return out

    renderer.render_to_file = AsyncMock(side_effect=mock_render_to_file)
    return renderer


@pytest.fixture
def context() -> dict[str, Any]:
    """Template context exactly as ProjectGenerator builds it."""
    return ProjectGenerator(Config()).build_context()


# ---------------------------------------------------------------------------
# Renderer interaction
# ---------------------------------------------------------------------------


class TestDockerGeneratorCalls:
    async def test_generate_all_keys(self, mock_renderer, context, tmp_path: Path):
        result = await DockerGenerator(mock_renderer).generate_all(tmp_path, context)
        assert set(result) == {
            "compose",
            "backend/Dockerfile",
            "backend/requirements.txt",
            "frontend/Dockerfile",
        }
        assert result["compose"] == tmp_path / "docker-compose.yml"

    async def test_templates_requested(self, mock_renderer, context, tmp_path: Path):
        await DockerGenerator(mock_renderer).generate_all(tmp_path, context)
        requested = [call.args[0] for call in mock_renderer.render_to_file.call_args_list]
        assert requested == [
            "docker-compose.yml.j2",
            "backend/Dockerfile.j2",
            "backend/requirements.txt.j2",
            "frontend/Dockerfile.j2",
        ]


# ---------------------------------------------------------------------------
# Rendered content
# ---------------------------------------------------------------------------


class TestComposeContent:
    async def test_services_and_ports(self, context, tmp_path: Path):
        path = await DockerGenerator(TemplateRenderer()).generate_compose(tmp_path, context)
        compose = yaml.safe_load(path.read_text())
        services = compose["services"]
        assert set(services) == {"backend", "frontend", "postgres"}
        assert services["backend"]["ports"] == ["8000:8000"]
        assert services["frontend"]["ports"] == ["5173:5173"]
        assert services["postgres"]["ports"] == ["5432:5432"]
        assert services["postgres"]["image"] == "postgres"

    async def test_backend_reaches_database_by_service_name(self, context, tmp_path: Path):
        path = await DockerGenerator(TemplateRenderer()).generate_compose(tmp_path, context)
        backend = yaml.safe_load(path.read_text())["services"]["backend"]
        assert backend["depends_on"] == ["postgres"]
        assert (
            "DATABASE_URL=postgresql://your_postgres_username:your_postgres_password"
            "@postgres:5432/app_db"
        ) in backend["environment"]

    async def test_postgres_environment(self, context, tmp_path: Path):
        path = await DockerGenerator(TemplateRenderer()).generate_compose(tmp_path, context)
        env = yaml.safe_load(path.read_text())["services"]["postgres"]["environment"]
        assert env == {
            "POSTGRES_DB": "app_db",
            "POSTGRES_USER": "your_postgres_username",
            "POSTGRES_PASSWORD": "your_postgres_password",
        }

    async def test_custom_ports(self, tmp_path: Path):
        config = Config(ports={"backend": 9000, "frontend": 3000, "database": 6543})
        ctx = ProjectGenerator(config).build_context()
        path = await DockerGenerator(TemplateRenderer()).generate_compose(tmp_path, ctx)
        services = yaml.safe_load(path.read_text())["services"]
        assert services["backend"]["ports"] == ["9000:9000"]
        assert services["frontend"]["ports"] == ["3000:3000"]
        assert services["postgres"]["ports"] == ["6543:6543"]


class TestDockerfiles:
    async def test_backend_requirements_include_driver(self, context, tmp_path: Path):
        await DockerGenerator(TemplateRenderer()).generate_dockerfiles(tmp_path, context)
        requirements = (tmp_path / "backend" / "requirements.txt").read_text().split()
        assert "django" in requirements
        assert "djangorestframework" in requirements
        assert "psycopg2-binary" in requirements

    async def test_dockerfiles_written(self, context, tmp_path: Path):
        written = await DockerGenerator(TemplateRenderer()).generate_dockerfiles(tmp_path, context)
        assert [p.relative_to(tmp_path).as_posix() for p in written] == [
            "backend/Dockerfile",
            "backend/requirements.txt",
            "frontend/Dockerfile",
        ]
        assert (tmp_path / "backend" / "Dockerfile").read_text().startswith("FROM ")
        assert (tmp_path / "frontend" / "Dockerfile").read_text().startswith("FROM ")
