"""djbootstrap lifecycle runner.

Drives one bootstrap run through strictly ordered stages:

    COLLECT -> INSTALL_DEPS -> SCAFFOLD -> PATCH_CONFIG -> WRITE_SECRETS
    -> APPLY_MIGRATIONS -> [EMIT_DEPLOYMENT_ARTIFACTS] -> INIT_VERSION_CONTROL
    -> DONE

Every stage returns a ``StageResult``.  The first failing stage moves the run
to FAILED, which is terminal: nothing is retried, resumed or rolled back.
EMIT_DEPLOYMENT_ARTIFACTS only runs when the collected config asks for it.
"""

from __future__ import annotations

import time
import traceback
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field
from rich.panel import Panel

from djbootstrap.config import RunnerSettings, ScaffoldConfig
from djbootstrap.errors import ScaffoldError
from djbootstrap.installer import (
    VirtualEnv,
    create_virtualenv,
    install_framework_packages,
    install_system_packages,
)
from djbootstrap.patcher import Patch, patch_file
from djbootstrap.templates import DEPLOYMENT_ARTIFACTS, TemplateRenderer
from djbootstrap.utils import (
    clean_environ,
    console,
    ensure_dir,
    format_duration,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
    run_checked,
)

INSTALLED_APPS_ANCHOR = "INSTALLED_APPS = ["


# ---------------------------------------------------------------------------
# Stage model
# ---------------------------------------------------------------------------


class Stage(str, Enum):
    COLLECT = "COLLECT"
    INSTALL_DEPS = "INSTALL_DEPS"
    SCAFFOLD = "SCAFFOLD"
    PATCH_CONFIG = "PATCH_CONFIG"
    WRITE_SECRETS = "WRITE_SECRETS"
    APPLY_MIGRATIONS = "APPLY_MIGRATIONS"
    EMIT_DEPLOYMENT_ARTIFACTS = "EMIT_DEPLOYMENT_ARTIFACTS"
    INIT_VERSION_CONTROL = "INIT_VERSION_CONTROL"
    DONE = "DONE"
    FAILED = "FAILED"


STAGE_ORDER: tuple[Stage, ...] = (
    Stage.COLLECT,
    Stage.INSTALL_DEPS,
    Stage.SCAFFOLD,
    Stage.PATCH_CONFIG,
    Stage.WRITE_SECRETS,
    Stage.APPLY_MIGRATIONS,
    Stage.EMIT_DEPLOYMENT_ARTIFACTS,
    Stage.INIT_VERSION_CONTROL,
)


class StageResult(BaseModel):
    """Outcome of a single stage."""

    stage: Stage
    success: bool
    detail: str = ""
    files: list[Path] = Field(default_factory=list)
    error: str | None = None
    duration: float = 0.0


class RunReport(BaseModel):
    """Outcome of a whole run."""

    state: Stage
    stages: list[StageResult] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state is Stage.DONE

    @property
    def failed_stage(self) -> Stage | None:
        for result in self.stages:
            if not result.success:
                return result.stage
        return None

    @property
    def files(self) -> list[Path]:
        return [path for result in self.stages for path in result.files]


class InvalidTransition(RuntimeError):
    """Raised when the runner is asked to leave a terminal state."""


# ---------------------------------------------------------------------------
# Lifecycle runner
# ---------------------------------------------------------------------------


class LifecycleRunner:
    """Runs the bootstrap stages for one project.

    Attributes:
        settings: Tool settings (package lists, venv location, db host/port).
        renderer: Template renderer for settings blocks and generated files.
        config: The collected ``ScaffoldConfig``, set by the COLLECT stage.
        venv: The project's virtual environment, set by INSTALL_DEPS.
        state: The current stage, or DONE / FAILED once the run ended.
    """

    _STAGE_METHODS: dict[Stage, str] = {
        Stage.COLLECT: "stage_collect",
        Stage.INSTALL_DEPS: "stage_install_deps",
        Stage.SCAFFOLD: "stage_scaffold",
        Stage.PATCH_CONFIG: "stage_patch_config",
        Stage.WRITE_SECRETS: "stage_write_secrets",
        Stage.APPLY_MIGRATIONS: "stage_apply_migrations",
        Stage.EMIT_DEPLOYMENT_ARTIFACTS: "stage_emit_deployment_artifacts",
        Stage.INIT_VERSION_CONTROL: "stage_init_version_control",
    }

    def __init__(
        self,
        collect: Callable[[], ScaffoldConfig],
        settings: RunnerSettings | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self._collect = collect
        self.settings = settings or RunnerSettings()
        self.renderer = renderer or TemplateRenderer()
        self.config: ScaffoldConfig | None = None
        self.venv: VirtualEnv | None = None
        self.state: Stage = Stage.COLLECT
        self._finished = False

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @staticmethod
    def stage_plan(deploy: bool) -> list[Stage]:
        """The ordered stages a run executes for the given deployment flag."""
        return [
            stage
            for stage in STAGE_ORDER
            if deploy or stage is not Stage.EMIT_DEPLOYMENT_ARTIFACTS
        ]

    def _transition(self, stage: Stage) -> None:
        if self.state in (Stage.DONE, Stage.FAILED):
            raise InvalidTransition(f"Run already ended in {self.state.value}")
        self.state = stage

    def _next_stage(self, current: Stage) -> Stage:
        deploy = self.config.deploy if self.config is not None else False
        plan = self.stage_plan(deploy)
        index = plan.index(current)
        return plan[index + 1] if index + 1 < len(plan) else Stage.DONE

    async def run(self) -> RunReport:
        """Execute every planned stage in order, stopping at the first failure."""
        if self._finished:
            raise InvalidTransition("A runner executes exactly once; create a new one")
        self._finished = True

        report = RunReport(state=Stage.COLLECT)
        run_start = time.monotonic()
        stage = Stage.COLLECT
        index = 1

        while stage is not Stage.DONE:
            self._transition(stage)
            print_stage_header(index, stage.value.replace("_", " "))
            result = await self._run_stage(stage)
            report.stages.append(result)

            if not result.success:
                self._transition(Stage.FAILED)
                print_error(
                    f"Stage {stage.value} FAILED after {format_duration(result.duration)}: "
                    f"{result.error}"
                )
                break

            print_success(f"Stage {stage.value} completed in {format_duration(result.duration)}")
            stage = self._next_stage(stage)
            index += 1
        else:
            self._transition(Stage.DONE)
            self._print_next_steps()

        report.state = self.state
        self._print_final_summary(report, time.monotonic() - run_start)
        return report

    async def _run_stage(self, stage: Stage) -> StageResult:
        method = getattr(self, self._STAGE_METHODS[stage])
        start = time.monotonic()
        try:
            result: StageResult = await method()
        except ScaffoldError as exc:
            return StageResult(
                stage=stage, success=False, error=str(exc),
                duration=time.monotonic() - start,
            )
        except Exception as exc:
            tb = traceback.format_exc()
            console.print(f"[dim]{tb}[/dim]", highlight=False, markup=False)
            return StageResult(
                stage=stage, success=False, error=f"{type(exc).__name__}: {exc}",
                duration=time.monotonic() - start,
            )
        result.duration = time.monotonic() - start
        return result

    def _require_config(self) -> ScaffoldConfig:
        if self.config is None:
            raise ScaffoldError("No configuration collected")
        return self.config

    def _require_venv(self) -> VirtualEnv:
        if self.venv is None:
            raise ScaffoldError("Virtual environment has not been created")
        return self.venv

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def stage_collect(self) -> StageResult:
        """Gather the project answers.  Nothing is written to disk."""
        config = self._collect()
        self.config = config
        print_summary_table(
            {
                "Target directory": str(config.target_dir),
                "Project": config.project_name,
                "App": config.app_name,
                "Database": config.db_name,
                "Database user": config.db_user,
                "Deployment artifacts": "yes" if config.deploy else "no",
            },
            title="Bootstrap plan",
        )
        return StageResult(
            stage=Stage.COLLECT,
            success=True,
            detail=f"project {config.project_name}, app {config.app_name}",
        )

    async def stage_install_deps(self) -> StageResult:
        """Install system packages, create the venv, install and freeze packages."""
        config = self._require_config()
        console.print(f"  Creating project directory at [bold]{config.target_dir}[/bold]")
        ensure_dir(config.target_dir)

        executed = await install_system_packages(self.settings, cwd=config.target_dir)
        if not executed:
            print_warning("  System packages skipped.")

        self.venv = await create_virtualenv(config.target_dir, self.settings)
        requirements = await install_framework_packages(
            self.venv, config.target_dir, self.settings
        )
        return StageResult(
            stage=Stage.INSTALL_DEPS,
            success=True,
            detail=f"{len(self.settings.framework_packages)} framework packages installed",
            files=[requirements],
        )

    async def stage_scaffold(self) -> StageResult:
        """Run ``django-admin startproject`` and ``manage.py startapp``."""
        config = self._require_config()
        venv = self._require_venv()
        env = venv.environ()

        await run_checked(
            [str(venv.executable("django-admin")), "startproject", config.project_name, "."],
            cwd=config.target_dir, timeout=self.settings.command_timeout, env=env,
        )
        await run_checked(
            [str(venv.python), "manage.py", "startapp", config.app_name],
            cwd=config.target_dir, timeout=self.settings.command_timeout, env=env,
        )
        if not config.settings_path.exists():
            raise ScaffoldError(f"startproject did not create {config.settings_path}")

        return StageResult(
            stage=Stage.SCAFFOLD,
            success=True,
            detail=f"project {config.project_name} and app {config.app_name} created",
            files=[config.manage_py, config.settings_path, config.target_dir / config.app_name],
        )

    def settings_patches(self) -> list[Patch]:
        """The edits applied to the generated ``settings.py``, in order."""
        config = self._require_config()
        render = self.renderer.render
        return [
            Patch(
                anchor=INSTALLED_APPS_ANCHOR,
                text=render("installed_app", config, self.settings),
                description=f"register {config.app_name} in INSTALLED_APPS",
            ),
            Patch(
                text=render("settings_env", config, self.settings),
                description="load .env and configure the PostgreSQL database",
            ),
            Patch(
                text=render("settings_static", config, self.settings),
                description="declare the app static directory",
            ),
        ]

    async def stage_patch_config(self) -> StageResult:
        """Register the app, wire up the database, and declare static files."""
        config = self._require_config()
        ensure_dir(config.static_dir)
        outcomes = patch_file(config.settings_path, self.settings_patches())
        for outcome in outcomes:
            console.print(
                f"  [green]+[/green] {outcome.patch.description} ({outcome.status.value})"
            )
        return StageResult(
            stage=Stage.PATCH_CONFIG,
            success=True,
            detail=f"{len(outcomes)} settings patches applied",
            files=[config.settings_path, config.static_dir],
        )

    async def stage_write_secrets(self) -> StageResult:
        """Write the ``.env`` file; readable by the owner only."""
        config = self._require_config()
        path = self.renderer.render_to_file(
            "env_file", config.env_path, config, self.settings, mode=0o600
        )
        console.print(f"  Database credentials written to [bold]{path}[/bold]")
        return StageResult(
            stage=Stage.WRITE_SECRETS, success=True, detail="environment file written", files=[path]
        )

    async def stage_apply_migrations(self) -> StageResult:
        """Apply initial migrations and optionally create a superuser."""
        config = self._require_config()
        venv = self._require_venv()
        env = venv.environ()

        await run_checked(
            [str(venv.python), "manage.py", "migrate"],
            cwd=config.target_dir, timeout=self.settings.command_timeout, env=env,
        )
        detail = "migrations applied"
        if self.settings.create_superuser:
            console.print("  Creating superuser for Django Admin...")
            await run_checked(
                [str(venv.python), "manage.py", "createsuperuser"],
                cwd=config.target_dir, capture=False, env=env,
            )
            detail += ", superuser created"
        return StageResult(stage=Stage.APPLY_MIGRATIONS, success=True, detail=detail)

    async def stage_emit_deployment_artifacts(self) -> StageResult:
        """Render the Dockerfile, compose file, and Cloud Build manifest."""
        config = self._require_config()
        written: list[Path] = []
        for name, filename in DEPLOYMENT_ARTIFACTS.items():
            written.append(
                self.renderer.render_to_file(
                    name, config.target_dir / filename, config, self.settings
                )
            )
        return StageResult(
            stage=Stage.EMIT_DEPLOYMENT_ARTIFACTS,
            success=True,
            detail=f"{len(written)} deployment artifacts written",
            files=written,
        )

    async def stage_init_version_control(self) -> StageResult:
        """Write ``.gitignore``, then ``git init``, ``git add .`` and commit."""
        config = self._require_config()
        files: list[Path] = []
        gitignore = config.target_dir / ".gitignore"
        if not gitignore.exists():
            files.append(
                self.renderer.render_to_file("gitignore", gitignore, config, self.settings)
            )

        env = clean_environ()
        for cmd in (
            ["git", "init"],
            ["git", "add", "."],
            ["git", "commit", "-m", self.settings.commit_message],
        ):
            await run_checked(
                cmd, cwd=config.target_dir, timeout=self.settings.command_timeout, env=env,
            )

        return StageResult(
            stage=Stage.INIT_VERSION_CONTROL,
            success=True,
            detail="repository initialised with first commit",
            files=files,
        )

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _print_next_steps(self) -> None:
        config = self._require_config()
        activate = Path(self.settings.venv_dir) / "bin" / "activate"
        console.print(
            Panel(
                f"1. Activate the virtual environment: [bold]source {activate}[/bold]\n"
                f"2. Start the server: [bold]python manage.py runserver[/bold]\n\n"
                f"Project created at {config.target_dir}.",
                title="[bold]Setup complete[/bold]",
                border_style="green",
            )
        )

    def _print_final_summary(self, report: RunReport, elapsed: float) -> None:
        rows = {
            result.stage.value: ("ok" if result.success else "FAILED")
            + (f" -- {result.detail}" if result.detail else "")
            for result in report.stages
        }
        rows["Result"] = report.state.value
        rows["Total duration"] = format_duration(elapsed)
        print_summary_table(rows, title="Run summary")
