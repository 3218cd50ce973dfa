"""Collect the answers that make up a ``ScaffoldConfig``.

The interactive path asks on the terminal with ``rich.prompt.Prompt`` (the
password is read without echo).  The non-interactive path reads the same
fields from a mapping, typically ``DJBOOTSTRAP_*`` environment variables.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

from pydantic import ValidationError
from rich.prompt import Prompt

from djbootstrap.config import ENV_PREFIX, ScaffoldConfig
from djbootstrap.errors import UsageError
from djbootstrap.utils import console

# (field, question, hidden)
QUESTIONS: tuple[tuple[str, str, bool], ...] = (
    ("project_name", "Enter the name of your Django project", False),
    ("app_name", "Enter the name of your Django app", False),
    ("db_name", "Enter the name of your PostgreSQL database", False),
    ("db_user", "Enter the PostgreSQL database user", False),
    ("db_password", "Enter the PostgreSQL database password", True),
)

Asker = Callable[[str, bool], str]


def _rich_ask(question: str, hidden: bool) -> str:
    return Prompt.ask(f"[bold green]{question}[/bold green]", password=hidden, console=console)


def collect_interactive(
    target_dir: str | Path,
    deploy: bool = False,
    prompt: Asker = _rich_ask,
) -> ScaffoldConfig:
    """Prompt for every field, re-asking until each answer is non-empty."""
    values: dict[str, str] = {}
    for field, question, hidden in QUESTIONS:
        answer = ""
        while not answer:
            answer = prompt(question, hidden).strip()
            if not answer:
                console.print("[yellow]A value is required.[/yellow]")
        values[field] = answer
    return build_config(target_dir, values, deploy)


def collect_from_mapping(
    target_dir: str | Path,
    values: Mapping[str, str],
    deploy: bool = False,
    prefix: str = ENV_PREFIX,
) -> ScaffoldConfig:
    """Read every field from *values* using upper-cased, prefixed keys.

    ``project_name`` is looked up as ``DJBOOTSTRAP_PROJECT_NAME`` and so on.

    Raises:
        UsageError: If any field is missing or empty.
    """
    found: dict[str, str] = {}
    missing: list[str] = []
    for field, _question, _hidden in QUESTIONS:
        key = f"{prefix}{field.upper()}"
        value = (values.get(key) or "").strip()
        if value:
            found[field] = value
        else:
            missing.append(key)
    if missing:
        raise UsageError(f"Missing required values: {', '.join(missing)}")
    return build_config(target_dir, found, deploy)


def build_config(
    target_dir: str | Path,
    values: Mapping[str, str],
    deploy: bool = False,
) -> ScaffoldConfig:
    """Construct a ``ScaffoldConfig``, turning validation failures into ``UsageError``."""
    if not str(target_dir).strip():
        raise UsageError("No directory specified.")
    try:
        return ScaffoldConfig(
            target_dir=Path(target_dir).expanduser().absolute(), deploy=deploy, **values
        )
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        raise UsageError(f"Missing or invalid values: {', '.join(fields)}") from exc
