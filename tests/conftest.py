"""Shared pytest fixtures for the djbootstrap test suite.

Provides reusable fixtures for:
- The canonical ``blog`` / ``posts`` scaffold configuration
- Runner settings that never touch the host package manager
- A Django ``settings.py`` as written by ``startproject``
- ``fake_tools``: a stand-in for every external command (venv, pip,
  django-admin, manage.py, git) that produces the files those tools would
"""

from __future__ import annotations

import textwrap
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from djbootstrap.config import RunnerSettings, ScaffoldConfig
from djbootstrap.errors import ExternalToolFailure


# ---------------------------------------------------------------------------
# Generated Django settings
# ---------------------------------------------------------------------------

STARTPROJECT_SETTINGS = textwrap.dedent(
    """\
    \"\"\"
    Django settings for {project} project.
    \"\"\"

    from pathlib import Path

    # Build paths inside the project like this: BASE_DIR / 'subdir'.
    BASE_DIR = Path(__file__).resolve().parent.parent

    SECRET_KEY = 'django-insecure-test-key'

    DEBUG = True

    ALLOWED_HOSTS = []


    # Application definition

    INSTALLED_APPS = [
        'django.contrib.admin',
        'django.contrib.auth',
        'django.contrib.contenttypes',
        'django.contrib.sessions',
        'django.contrib.messages',
        'django.contrib.staticfiles',
    ]

    ROOT_URLCONF = '{project}.urls'

    STATIC_URL = 'static/'
    """
)


@pytest.fixture
def settings_text() -> str:
    """``settings.py`` for a project named ``blog``, as startproject writes it."""
    return STARTPROJECT_SETTINGS.format(project="blog")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    """Where the project gets created; deliberately does not exist yet."""
    return tmp_path / "demo"


@pytest.fixture
def scaffold_config(target_dir: Path) -> ScaffoldConfig:
    return ScaffoldConfig(
        project_name="blog",
        app_name="posts",
        db_name="blogdb",
        db_user="bloguser",
        db_password="secret",
        target_dir=target_dir,
    )


@pytest.fixture
def deploy_config(scaffold_config: ScaffoldConfig) -> ScaffoldConfig:
    return scaffold_config.model_copy(update={"deploy": True})


@pytest.fixture
def runner_settings() -> RunnerSettings:
    return RunnerSettings(skip_system_packages=True)


# ---------------------------------------------------------------------------
# Fake external tools
# ---------------------------------------------------------------------------


class FakeTools:
    """Async replacement for ``run_checked`` that mimics the real tools.

    Every call is recorded in ``calls`` as a dict with the command and the
    keyword arguments.  Set ``fail_on`` to a substring of a command line to
    make that command fail with ``ExternalToolFailure``.  Set
    ``settings_template`` to control what ``startproject`` writes.
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_on: str | None = None
        self.settings_template: str = STARTPROJECT_SETTINGS
        self.freeze_output = "Django==5.1.2\ndjango-environ==0.11.2\ngunicorn==23.0.0"

    @property
    def commands(self) -> list[list[str]]:
        return [call["cmd"] for call in self.calls]

    def find(self, fragment: str) -> dict[str, Any]:
        """The first recorded call whose command line contains *fragment*."""
        for call in self.calls:
            if fragment in " ".join(call["cmd"]):
                return call
        raise AssertionError(f"No command containing {fragment!r} was run")

    async def __call__(
        self,
        cmd: Sequence[str],
        cwd: str | Path | None = None,
        timeout: float | None = None,
        capture: bool = True,
        env: dict[str, str] | None = None,
    ) -> str:
        cmd = list(cmd)
        self.calls.append(
            {"cmd": cmd, "cwd": cwd, "timeout": timeout, "capture": capture, "env": env}
        )
        line = " ".join(cmd)
        if self.fail_on and self.fail_on in line:
            raise ExternalToolFailure(cmd, 1, f"simulated failure of {self.fail_on}")

        root = Path(cwd) if cwd else Path.cwd()
        if cmd[1:3] == ["-m", "venv"]:
            (root / cmd[3] / "bin").mkdir(parents=True, exist_ok=True)
        elif cmd[-1] == "freeze":
            return self.freeze_output
        elif "startproject" in cmd:
            name = cmd[cmd.index("startproject") + 1]
            (root / name).mkdir(parents=True, exist_ok=True)
            (root / name / "__init__.py").write_text("", encoding="utf-8")
            (root / name / "settings.py").write_text(
                self.settings_template.format(project=name), encoding="utf-8"
            )
            (root / "manage.py").write_text("# manage.py\n", encoding="utf-8")
        elif "startapp" in cmd:
            name = cmd[cmd.index("startapp") + 1]
            (root / name).mkdir(parents=True, exist_ok=True)
            (root / name / "__init__.py").write_text("", encoding="utf-8")
            (root / name / "models.py").write_text("", encoding="utf-8")
        elif cmd[:2] == ["git", "init"]:
            (root / ".git").mkdir(exist_ok=True)
        return ""


@pytest.fixture
def fake_tools(monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    """Route every external command through a ``FakeTools`` instance."""
    tools = FakeTools()
    monkeypatch.setattr("djbootstrap.installer.run_checked", tools)
    monkeypatch.setattr("djbootstrap.runner.run_checked", tools)
    return tools
