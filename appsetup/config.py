"""appsetup configuration.

Centralised, typed configuration for a setup run. All settings use Pydantic v2
models so they can be validated at construction time and serialised to/from
JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class PortConfig(BaseModel):
    """Port allocation for the three generated services."""

    backend: int = Field(default=8000, ge=1, le=65535)
    frontend: int = Field(default=5173, ge=1, le=65535)
    database: int = Field(default=5432, ge=1, le=65535)

    def as_dict(self) -> dict[str, int]:
        """Return a plain ``{service: port}`` mapping."""
        return {
            "backend": self.backend,
            "frontend": self.frontend,
            "database": self.database,
        }


class DatabaseConfig(BaseModel):
    """PostgreSQL connection settings written into the generated project.

    The user and password defaults are placeholders; the generated
    ``settings.py`` and ``docker-compose.yml`` are meant to be edited.
    """

    name: str = Field(default="app_db", min_length=1)
    user: str = Field(default="your_postgres_username")
    password: str = Field(default="your_postgres_password")
    host: str = Field(default="localhost")
    service_command: list[str] = Field(
        default=["brew", "services", "start", "postgresql"],
        description="Command that starts the local PostgreSQL service",
    )
    maintenance_db: str = Field(
        default="postgres", description="Database psql connects to for CREATE DATABASE"
    )

    def url(self, port: int, host: str | None = None) -> str:
        """Return a ``postgresql://`` URL for this database.

        *host* overrides the configured host, e.g. with a compose service name.
        """
        return f"postgresql://{self.user}:{self.password}@{host or self.host}:{port}/{self.name}"


class Config(BaseModel):
    """Global appsetup configuration.

    Holds every tuneable parameter and derived path used by the setup run.
    Instances are typically created once by the CLI entry point and then
    passed through the rest of the system.
    """

    project_name: str = Field(default="django-react-app", min_length=1)
    output_dir: Path = Field(default=Path("."))
    django_project: str = Field(default="backend", description="Name passed to startproject")
    python_version: str = Field(default="3.10")
    use_conda: bool = Field(default=True)
    conda_env: str = Field(default="", description="Defaults to the project name")
    python: str = Field(default="python", description="Interpreter used when use_conda is off")
    with_accounts: bool = Field(default=True)
    command_timeout: int = Field(default=600, ge=1, description="Per-command timeout in seconds")
    ports: PortConfig = Field(default_factory=PortConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def project_root(self) -> Path:
        """Root of the generated project."""
        return self.output_dir / self.project_name

    @property
    def backend_dir(self) -> Path:
        return self.project_root / "backend"

    @property
    def frontend_dir(self) -> Path:
        return self.project_root / "frontend"

    @property
    def settings_path(self) -> Path:
        """The ``settings.py`` written by ``django-admin startproject``."""
        return self.backend_dir / self.django_project / "settings.py"

    @property
    def urls_path(self) -> Path:
        """The project-level ``urls.py`` written by ``startproject``."""
        return self.backend_dir / self.django_project / "urls.py"

    @property
    def manage_py(self) -> Path:
        return self.backend_dir / "manage.py"

    @property
    def env_name(self) -> str:
        """Name of the conda environment."""
        return self.conda_env or self.project_name

    @property
    def backend_url(self) -> str:
        """URL the Vite dev server proxies API calls to."""
        return f"http://localhost:{self.ports.backend}"

    @property
    def required_tools(self) -> list[str]:
        """Executables that must be on ``PATH`` before anything runs."""
        tools = [self.database.service_command[0], "psql"]
        if self.use_conda:
            tools.append("conda")
        tools.extend(["node", "npm"])
        return tools

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<project_root>/appsetup.json``.

        Returns:
            The resolved path where the file was written.
        """
        target = path or (self.project_root / "appsetup.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            APPSETUP_PROJECT_NAME, APPSETUP_OUTPUT_DIR, APPSETUP_USE_CONDA,
            APPSETUP_PYTHON, APPSETUP_WITH_ACCOUNTS, APPSETUP_COMMAND_TIMEOUT,
            APPSETUP_DB_NAME, APPSETUP_DB_USER, APPSETUP_DB_PASSWORD,
            APPSETUP_DB_HOST.
        """
        db_kwargs: dict[str, Any] = {}
        for var, key in (
            ("APPSETUP_DB_NAME", "name"),
            ("APPSETUP_DB_USER", "user"),
            ("APPSETUP_DB_PASSWORD", "password"),
            ("APPSETUP_DB_HOST", "host"),
        ):
            if os.environ.get(var):
                db_kwargs[key] = os.environ[var]

        kwargs: dict[str, Any] = {}
        if os.environ.get("APPSETUP_PROJECT_NAME"):
            kwargs["project_name"] = os.environ["APPSETUP_PROJECT_NAME"]
        if os.environ.get("APPSETUP_OUTPUT_DIR"):
            kwargs["output_dir"] = Path(os.environ["APPSETUP_OUTPUT_DIR"])
        if os.environ.get("APPSETUP_USE_CONDA"):
            kwargs["use_conda"] = _env_flag(os.environ["APPSETUP_USE_CONDA"])
        if os.environ.get("APPSETUP_PYTHON"):
            kwargs["python"] = os.environ["APPSETUP_PYTHON"]
        if os.environ.get("APPSETUP_WITH_ACCOUNTS"):
            kwargs["with_accounts"] = _env_flag(os.environ["APPSETUP_WITH_ACCOUNTS"])
        if os.environ.get("APPSETUP_COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = int(os.environ["APPSETUP_COMMAND_TIMEOUT"])

        return cls(database=DatabaseConfig(**db_kwargs), **kwargs)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")
