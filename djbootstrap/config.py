"""djbootstrap configuration.

Two Pydantic v2 models describe a run:

* ``ScaffoldConfig`` -- the immutable answers collected from the user
  (names, database credentials, target directory, deployment flag).
* ``RunnerSettings`` -- tool settings that are not user input (package
  lists, package-manager command, virtualenv location, database host/port).
  They have sensible defaults and can be overridden from ``DJBOOTSTRAP_*``
  environment variables or CLI flags.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

SYSTEM_PACKAGES: tuple[str, ...] = (
    "python3",
    "python3-pip",
    "python3-venv",
    "git",
    "curl",
    "libpq-dev",
)

FRAMEWORK_PACKAGES: tuple[str, ...] = (
    "django",
    "djangorestframework",
    "django-environ",
    "gunicorn",
    "psycopg2-binary",
)

ENV_PREFIX = "DJBOOTSTRAP_"

_TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, environ: Mapping[str, str] | None = None) -> bool:
    """Return ``True`` if ``DJBOOTSTRAP_<name>`` is set to a truthy value."""
    source = os.environ if environ is None else environ
    return source.get(f"{ENV_PREFIX}{name}", "").strip().lower() in _TRUTHY


class ScaffoldConfig(BaseModel):
    """Everything the user tells us about the project to bootstrap.

    Created once, never mutated.  Presence is the only validation: the
    framework CLI and the database reject malformed names on their own.
    """

    model_config = ConfigDict(frozen=True)

    project_name: str = Field(..., min_length=1, description="Django project package name")
    app_name: str = Field(..., min_length=1, description="Name of the first Django app")
    db_name: str = Field(..., min_length=1)
    db_user: str = Field(..., min_length=1)
    db_password: SecretStr = Field(..., description="Only ever written to the .env file")
    target_dir: Path = Field(..., description="Directory the project is created in")
    deploy: bool = Field(default=False, description="Emit Dockerfile, compose and Cloud Build files")

    @field_validator("db_password")
    @classmethod
    def _password_present(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("db_password must not be empty")
        return value

    @property
    def settings_path(self) -> Path:
        """Path to the generated ``<project>/settings.py``."""
        return self.target_dir / self.project_name / "settings.py"

    @property
    def env_path(self) -> Path:
        """Path to the ``.env`` file holding the database credentials."""
        return self.target_dir / ".env"

    @property
    def static_dir(self) -> Path:
        """The app's namespaced static directory, ``<app>/static/<app>``."""
        return self.target_dir / self.app_name / "static" / self.app_name

    @property
    def manage_py(self) -> Path:
        return self.target_dir / "manage.py"


class RunnerSettings(BaseModel):
    """Tuning knobs for the lifecycle runner."""

    system_packages: list[str] = Field(default_factory=lambda: list(SYSTEM_PACKAGES))
    framework_packages: list[str] = Field(default_factory=lambda: list(FRAMEWORK_PACKAGES))
    package_manager: str = Field(default="apt")
    use_sudo: bool = Field(default=True)
    skip_system_packages: bool = Field(
        default=False, description="Skip the host package manager step entirely"
    )
    python: str = Field(default="python3", description="Interpreter used to create the venv")
    venv_dir: str = Field(default=".venv")
    db_host: str = Field(default="127.0.0.1")
    db_port: int = Field(default=5432, ge=1, le=65535)
    create_superuser: bool = Field(default=False)
    inline_secrets: bool = Field(
        default=False,
        description="Write cleartext credentials into docker-compose.yml (local use only)",
    )
    command_timeout: float | None = Field(
        default=None, gt=0, description="Per-command timeout in seconds; None waits forever"
    )
    commit_message: str = Field(
        default="Initial Django project setup with PostgreSQL configuration"
    )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RunnerSettings":
        """Build ``RunnerSettings`` from environment variables.

        Recognised variables (all optional):
            DJBOOTSTRAP_SYSTEM_PACKAGES, DJBOOTSTRAP_FRAMEWORK_PACKAGES
            (space-separated), DJBOOTSTRAP_PACKAGE_MANAGER, DJBOOTSTRAP_NO_SUDO,
            DJBOOTSTRAP_SKIP_SYSTEM_PACKAGES, DJBOOTSTRAP_PYTHON,
            DJBOOTSTRAP_VENV_DIR, DJBOOTSTRAP_DB_HOST, DJBOOTSTRAP_DB_PORT,
            DJBOOTSTRAP_CREATE_SUPERUSER, DJBOOTSTRAP_INLINE_SECRETS,
            DJBOOTSTRAP_COMMAND_TIMEOUT.
        """
        source = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = source.get(f"{ENV_PREFIX}{name}")
            return value if value else None

        kwargs: dict[str, Any] = {}
        if get("SYSTEM_PACKAGES"):
            kwargs["system_packages"] = get("SYSTEM_PACKAGES").split()
        if get("FRAMEWORK_PACKAGES"):
            kwargs["framework_packages"] = get("FRAMEWORK_PACKAGES").split()
        if get("PACKAGE_MANAGER"):
            kwargs["package_manager"] = get("PACKAGE_MANAGER")
        if get("PYTHON"):
            kwargs["python"] = get("PYTHON")
        if get("VENV_DIR"):
            kwargs["venv_dir"] = get("VENV_DIR")
        if get("DB_HOST"):
            kwargs["db_host"] = get("DB_HOST")
        if get("DB_PORT"):
            kwargs["db_port"] = get("DB_PORT")
        if get("COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = get("COMMAND_TIMEOUT")

        kwargs["use_sudo"] = not env_flag("NO_SUDO", source)
        kwargs["skip_system_packages"] = env_flag("SKIP_SYSTEM_PACKAGES", source)
        kwargs["create_superuser"] = env_flag("CREATE_SUPERUSER", source)
        kwargs["inline_secrets"] = env_flag("INLINE_SECRETS", source)

        return cls(**kwargs)
