"""Error taxonomy for djbootstrap.

Every failure is fatal to the run.  The lifecycle runner catches these at the
stage boundary and turns them into a failed ``StageResult``; the CLI maps the
outcome to exit code 1.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any


class ScaffoldError(Exception):
    """Base class for all djbootstrap errors."""


class UsageError(ScaffoldError):
    """Raised when a required argument or input field is missing."""


class ExternalToolFailure(ScaffoldError):
    """Raised when an invoked tool (apt, pip, django-admin, git) fails.

    Attributes:
        command: The argument vector that was executed.
        returncode: The process exit status (``-1`` on timeout).
        stderr: Captured standard error, if any.
    """

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed with exit code {returncode}: {' '.join(self.command)}"
        if stderr:
            message = f"{message}\n{stderr}"
        super().__init__(message)


class PatchError(ScaffoldError):
    """Raised when a patch anchor cannot be found in the target file."""

    def __init__(self, path: str | Path | None, patch: Any) -> None:
        self.path = Path(path) if path is not None else None
        self.patch = patch
        where = f" in {self.path}" if self.path is not None else ""
        super().__init__(
            f"Anchor {patch.anchor!r} not found{where} ({patch.description or 'unnamed patch'})"
        )
