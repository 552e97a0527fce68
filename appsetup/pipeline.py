"""appsetup setup run.

Scaffolds a Django REST + React/Vite + PostgreSQL project as a straight
sequence of named steps.  Every step either emits templates, runs an
external tool, or applies idempotent patches; the first failing step stops
the run.  Nothing is rolled back, but every step is safe to repeat, so a
failed run can simply be started again once the cause is fixed.

Usage::

    appsetup
    appsetup --output ~/code --no-accounts
    python -m appsetup.pipeline --config appsetup.json
"""

from __future__ import annotations

import asyncio
import shlex
import sys
import time
import traceback
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field
from rich.panel import Panel

from appsetup.config import Config
from appsetup.patcher import PatchError, PatchResult
from appsetup.patcher.operations import (
    add_installed_app,
    add_vite_proxy,
    include_app_urls,
    set_auth_redirects,
    set_database_credentials,
    use_postgres,
)
from appsetup.scaffolder import ProjectGenerator
from appsetup.utils import (
    console,
    find_missing_tools,
    format_duration,
    print_error,
    print_info,
    print_step_header,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
)

CommandRunner = Callable[..., Awaitable[tuple[int, str, str]]]

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SetupError(Exception):
    """Raised when a setup step fails irrecoverably."""


class PrerequisiteError(SetupError):
    """A required executable is not on ``PATH``."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"required tool(s) not installed: {', '.join(missing)}")


class CommandError(SetupError):
    """An external command exited with a non-zero status."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str) -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        message = f"`{shlex.join(cmd)}` exited with status {returncode}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Step bookkeeping
# ---------------------------------------------------------------------------


@dataclass
class Step:
    name: str
    action: Callable[[], Awaitable[str]]


class StepResult(BaseModel):
    """Outcome of one setup step."""

    name: str
    success: bool
    detail: str = ""
    duration: float = 0.0


class SetupReport(BaseModel):
    """Outcome of a whole run."""

    project_root: Path
    steps: list[StepResult] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.steps) and all(step.success for step in self.steps)

    @property
    def failed_step(self) -> StepResult | None:
        return next((step for step in self.steps if not step.success), None)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class SetupPipeline:
    """Drives the setup steps in order.

    Attributes:
        config: Run configuration; every path is derived from it, the
            process working directory is never changed.
        runner: Coroutine used for external commands, with the signature of
            :func:`appsetup.utils.run_command`.
        generator: Template emitter for the project's literal files.
    """

    def __init__(
        self,
        config: Config,
        runner: CommandRunner | None = None,
        generator: ProjectGenerator | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or run_command
        self.generator = generator or ProjectGenerator(config)

    def steps(self) -> list[Step]:
        """The ordered step chain for this configuration."""
        steps = [
            Step("check_prerequisites", self.check_prerequisites),
            Step("start_database", self.start_database),
            Step("create_database", self.create_database),
            Step("create_directories", self.create_directories),
            Step("emit_environment", self.emit_environment),
            Step("create_environment", self.create_environment),
            Step("start_django_project", self.start_django_project),
            Step("start_api_app", self.start_api_app),
            Step("configure_api", self.configure_api),
            Step("configure_database", self.configure_database),
            Step("migrate", self.migrate),
            Step("create_frontend", self.create_frontend),
            Step("emit_frontend", self.emit_frontend),
            Step("emit_docker", self.emit_docker),
        ]
        if self.config.with_accounts:
            steps.extend([
                Step("start_accounts_app", self.start_accounts_app),
                Step("configure_accounts", self.configure_accounts),
                Step("emit_accounts_frontend", self.emit_accounts_frontend),
            ])
        return steps

    async def run(self) -> SetupReport:
        """Execute every step, stopping at the first failure."""
        run_start = time.monotonic()
        report = SetupReport(project_root=self.config.project_root)

        console.print(
            Panel(
                f"[bold bright_cyan]Django + React + PostgreSQL setup[/bold bright_cyan]\n"
                f"Project  : {self.config.project_name}\n"
                f"Output   : {self.config.output_dir.resolve()}\n"
                f"Database : {self.config.database.name}",
                title="[bold]Setup Start[/bold]",
                border_style="bright_cyan",
            )
        )

        steps = self.steps()
        for index, step in enumerate(steps, start=1):
            print_step_header(index, len(steps), step.name)
            step_start = time.monotonic()
            try:
                detail = await step.action()
            except (SetupError, PatchError) as exc:
                report.steps.append(self._failed(step, str(exc), step_start))
                print_error(f"{step.name} FAILED: {exc}")
                break
            except Exception as exc:
                report.steps.append(self._failed(step, traceback.format_exc(), step_start))
                print_error(f"{step.name} FAILED: {exc}")
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
                break

            report.steps.append(
                StepResult(
                    name=step.name,
                    success=True,
                    detail=detail,
                    duration=time.monotonic() - step_start,
                )
            )
            if detail:
                print_success(detail)

        self._print_final_summary(report, time.monotonic() - run_start)
        return report

    # ------------------------------------------------------------------
    # Database and environment
    # ------------------------------------------------------------------

    async def check_prerequisites(self) -> str:
        missing = find_missing_tools(self.config.required_tools)
        if missing:
            raise PrerequisiteError(missing)
        return f"Found {', '.join(self.config.required_tools)}"

    async def start_database(self) -> str:
        await self._exec(self.config.database.service_command)
        return "PostgreSQL service started"

    async def create_database(self) -> str:
        db = self.config.database
        literal = db.name.replace("'", "''")
        exists = await self._exec(
            ["psql", db.maintenance_db, "-tAc", f"SELECT 1 FROM pg_database WHERE datname = '{literal}'"]
        )
        if exists.strip() == "1":
            print_info(f"Database {db.name} already exists.")
            return f"Database {db.name} ready"
        identifier = db.name.replace('"', '""')
        await self._exec(["psql", db.maintenance_db, "-c", f'CREATE DATABASE "{identifier}";'])
        return f"Created database {db.name}"

    async def create_directories(self) -> str:
        dirs = await self.generator.create_directory_structure()
        saved = await asyncio.to_thread(self.config.save)
        return f"Created {', '.join(str(d) for d in dirs)}; settings saved to {saved.name}"

    async def emit_environment(self) -> str:
        paths = await self.generator.emit_environment()
        return _written(paths)

    async def create_environment(self) -> str:
        if not self.config.use_conda:
            return f"Using interpreter {self.config.python}"
        listing = await self._exec(["conda", "env", "list"])
        names = {line.split()[0] for line in listing.splitlines() if line.strip() and not line.startswith("#")}
        if self.config.env_name in names:
            print_info(f"Conda environment '{self.config.env_name}' already exists.")
            return f"Conda environment {self.config.env_name} ready"
        await self._exec(["conda", "env", "create", "-f", "environment.yml"], cwd=self.config.backend_dir)
        return f"Created conda environment {self.config.env_name}"

    # ------------------------------------------------------------------
    # Django backend
    # ------------------------------------------------------------------

    async def start_django_project(self) -> str:
        if self.config.manage_py.exists():
            print_warning("Django project already exists. Skipping creation...")
            return "Django project ready"
        await self._exec(
            self._python("-m", "django", "startproject", self.config.django_project, "."),
            cwd=self.config.backend_dir,
        )
        return f"Created Django project {self.config.django_project}"

    async def start_api_app(self) -> str:
        return await self._start_app("api")

    async def configure_api(self) -> str:
        self._report(add_installed_app(self.config.settings_path, "api"))
        paths = await self.generator.emit_api()
        self._report(include_app_urls(self.config.urls_path, "api", "api/"))
        return _written(paths)

    async def configure_database(self) -> str:
        settings = self.config.settings_path
        self._report(use_postgres(settings, self.config.database.name))
        self._report(set_database_credentials(settings, self.config.database, self.config.ports.database))
        return f"Django configured for PostgreSQL database {self.config.database.name}"

    async def migrate(self) -> str:
        cwd = self.config.backend_dir
        await self._exec(self._python("manage.py", "makemigrations", "api"), cwd=cwd)
        await self._exec(self._python("manage.py", "migrate"), cwd=cwd)
        return "Database migrated"

    # ------------------------------------------------------------------
    # React frontend
    # ------------------------------------------------------------------

    async def create_frontend(self) -> str:
        frontend = self.config.frontend_dir
        if (frontend / "package.json").exists():
            print_warning("Vite project already exists. Skipping creation...")
        else:
            await self._exec(
                ["npm", "create", "vite@latest", frontend.name, "--", "--template", "react"],
                cwd=self.config.project_root,
                env={"npm_config_yes": "true"},
            )
        await self._exec(["npm", "install"], cwd=frontend)
        await self._exec(["npm", "install", "react-router-dom", "react-bootstrap"], cwd=frontend)
        return "Frontend dependencies installed"

    async def emit_frontend(self) -> str:
        paths = await self.generator.emit_frontend()
        self._report(
            add_vite_proxy(
                self.config.frontend_dir / "vite.config.js",
                self.config.backend_url,
                port=self.config.ports.frontend,
            )
        )
        return _written(paths)

    async def emit_docker(self) -> str:
        paths = await self.generator.emit_docker()
        return _written(list(paths.values()))

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def start_accounts_app(self) -> str:
        return await self._start_app("accounts")

    async def configure_accounts(self) -> str:
        paths = await self.generator.emit_accounts_backend()
        settings = self.config.settings_path
        self._report(set_auth_redirects(settings))
        self._report(add_installed_app(settings, "accounts"))
        self._report(include_app_urls(self.config.urls_path, "accounts", "accounts/"))
        return _written(paths)

    async def emit_accounts_frontend(self) -> str:
        paths = await self.generator.emit_accounts_frontend()
        return _written(paths)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _start_app(self, app: str) -> str:
        if (self.config.backend_dir / app).is_dir():
            print_warning(f"The '{app}' app already exists. Skipping creation...")
            return f"App {app} ready"
        await self._exec(self._python("manage.py", "startapp", app), cwd=self.config.backend_dir)
        return f"Created app {app}"

    def _python(self, *args: str) -> list[str]:
        """Command line running the project interpreter with *args*."""
        if self.config.use_conda:
            return ["conda", "run", "-n", self.config.env_name, "python", *args]
        return [self.config.python, *args]

    async def _exec(
        self,
        cmd: list[str],
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> str:
        """Run *cmd* and return its stdout; raise ``CommandError`` on failure."""
        print_info(f"$ {shlex.join(cmd)}")
        returncode, stdout, stderr = await self.runner(
            cmd, cwd=cwd, timeout=self.config.command_timeout, env=env
        )
        if returncode != 0:
            raise CommandError(cmd, returncode, stderr)
        return stdout

    def _report(self, results: list[PatchResult]) -> None:
        for result in results:
            name = result.path.name
            if result.applied:
                console.print(f"  [green]+[/green] {result.label} ({name})")
            else:
                print_info(f"  = {result.label} already applied ({name})")

    def _failed(self, step: Step, detail: str, started: float) -> StepResult:
        return StepResult(
            name=step.name,
            success=False,
            detail=detail,
            duration=time.monotonic() - started,
        )

    def _print_final_summary(self, report: SetupReport, elapsed: float) -> None:
        failed = report.failed_step
        print_summary_table(
            {
                "Project": str(report.project_root),
                "Steps completed": str(sum(1 for s in report.steps if s.success)),
                "Failed step": failed.name if failed else "-",
                "Duration": format_duration(elapsed),
            },
            title="Setup Summary",
        )


def _written(paths: list[Path]) -> str:
    return f"Wrote {len(paths)} file(s)"


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``appsetup`` / ``python -m appsetup.pipeline``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="appsetup",
        description="Scaffold a Django REST + React/Vite + PostgreSQL application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  appsetup\n"
            "  appsetup --output ~/code\n"
            "  appsetup --config appsetup.json --no-accounts\n"
        ),
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Directory the project folder is created in (default: current directory)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON configuration file (default: APPSETUP_* environment variables)",
    )
    parser.add_argument(
        "--no-accounts",
        action="store_true",
        help="Skip the user accounts app and auth components",
    )

    args = parser.parse_args(argv)

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            console.print(f"[bold red]Error:[/bold red] Config file not found: {config_path}")
            sys.exit(1)
        config = Config.load(config_path)
    else:
        config = Config.from_env()

    if args.output:
        config.output_dir = Path(args.output)
    if args.no_accounts:
        config.with_accounts = False

    report = asyncio.run(SetupPipeline(config).run())

    if report.success:
        console.print("[bold green]Setup complete! Your Django-React-PostgreSQL application is ready.[/bold green]")
    else:
        console.print("[bold red]Setup failed.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
