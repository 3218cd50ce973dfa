"""System and framework dependency installation.

Installs the host packages with the OS package manager, creates an isolated
virtual environment, installs the framework packages into it, and records the
resolved set in ``requirements.txt``.

The virtual environment is never "activated".  Every command that must run
inside it receives the venv's interpreter path and an explicit environment
from ``VirtualEnv.environ()``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from djbootstrap.config import RunnerSettings
from djbootstrap.utils import clean_environ, run_checked, write_text


class VirtualEnv:
    """Location of a virtual environment and the environment to run it with."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).absolute()

    @property
    def bin_dir(self) -> Path:
        return self.root / ("Scripts" if os.name == "nt" else "bin")

    @property
    def python(self) -> Path:
        return self.executable("python")

    def executable(self, name: str) -> Path:
        """Path of console script *name* installed in this environment."""
        suffix = ".exe" if os.name == "nt" else ""
        return self.bin_dir / f"{name}{suffix}"

    def environ(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """Child environment equivalent to an activated venv."""
        environ = clean_environ(base)
        environ["VIRTUAL_ENV"] = str(self.root)
        environ["PATH"] = os.pathsep.join(
            p for p in (str(self.bin_dir), environ.get("PATH", "")) if p
        )
        return environ

    def __repr__(self) -> str:
        return f"VirtualEnv({str(self.root)!r})"


def system_package_commands(settings: RunnerSettings) -> list[list[str]]:
    """The package-manager invocations for the configured system packages."""
    prefix = ["sudo"] if settings.use_sudo else []
    manager = settings.package_manager
    return [
        [*prefix, manager, "update"],
        [*prefix, manager, "install", "-y", *settings.system_packages],
    ]


async def install_system_packages(
    settings: RunnerSettings,
    cwd: Path | None = None,
) -> list[list[str]]:
    """Run the host package manager.  Returns the commands that were executed."""
    if settings.skip_system_packages or not settings.system_packages:
        return []
    commands = system_package_commands(settings)
    for cmd in commands:
        await run_checked(
            cmd, cwd=cwd, timeout=settings.command_timeout, capture=False, env=clean_environ()
        )
    return commands


async def create_virtualenv(target_dir: Path, settings: RunnerSettings) -> VirtualEnv:
    """Create ``<target_dir>/<venv_dir>`` with ``python -m venv``."""
    venv = VirtualEnv(target_dir / settings.venv_dir)
    await run_checked(
        [settings.python, "-m", "venv", settings.venv_dir],
        cwd=target_dir,
        timeout=settings.command_timeout,
        env=clean_environ(),
    )
    return venv


async def install_framework_packages(
    venv: VirtualEnv,
    target_dir: Path,
    settings: RunnerSettings,
) -> Path:
    """Upgrade pip, install the framework packages, and freeze them.

    Returns:
        Path to the written ``requirements.txt``.
    """
    env = venv.environ()
    pip = [str(venv.python), "-m", "pip"]

    await run_checked(
        [*pip, "install", "--upgrade", "pip"],
        cwd=target_dir, timeout=settings.command_timeout, env=env,
    )
    await run_checked(
        [*pip, "install", *settings.framework_packages],
        cwd=target_dir, timeout=settings.command_timeout, env=env,
    )
    frozen = await run_checked(
        [*pip, "freeze"],
        cwd=target_dir, timeout=settings.command_timeout, env=env,
    )
    return write_text(target_dir / "requirements.txt", frozen + "\n" if frozen else "")
