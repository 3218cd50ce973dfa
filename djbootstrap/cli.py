"""Command-line entry point for ``djbootstrap``.

Usage::

    djbootstrap /path/to/project
    djbootstrap /path/to/project --deploy --skip-system-packages
    DJBOOTSTRAP_DEPLOY=1 python -m djbootstrap /path/to/project
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from functools import partial

from pydantic import ValidationError
from rich.markup import escape

from djbootstrap.collector import collect_from_mapping, collect_interactive
from djbootstrap.config import RunnerSettings, env_flag
from djbootstrap.runner import LifecycleRunner
from djbootstrap.utils import console, err_console


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="djbootstrap",
        description="Bootstrap a Django + PostgreSQL project in a fresh directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  djbootstrap ~/code/blog\n"
            "  djbootstrap ~/code/blog --deploy\n"
            "  DJBOOTSTRAP_PROJECT_NAME=blog ... djbootstrap ~/code/blog --no-input\n"
        ),
    )
    parser.add_argument(
        "directory",
        nargs="?",
        help="Directory to create the project in",
    )
    parser.add_argument(
        "--deploy",
        action="store_true",
        help="Also write Dockerfile, docker-compose.yml and cloudbuild.yaml "
        "(or set DJBOOTSTRAP_DEPLOY=1)",
    )
    parser.add_argument(
        "--no-input",
        action="store_true",
        help="Read answers from DJBOOTSTRAP_PROJECT_NAME, DJBOOTSTRAP_APP_NAME, "
        "DJBOOTSTRAP_DB_NAME, DJBOOTSTRAP_DB_USER and DJBOOTSTRAP_DB_PASSWORD",
    )
    parser.add_argument(
        "--skip-system-packages",
        action="store_true",
        help="Do not run the OS package manager",
    )
    parser.add_argument(
        "--create-superuser",
        action="store_true",
        help="Run manage.py createsuperuser after migrating",
    )
    parser.add_argument(
        "--inline-secrets",
        action="store_true",
        help="Write cleartext credentials into docker-compose.yml (local use only)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-command timeout in seconds (default: wait indefinitely)",
    )
    return parser


def build_settings(args: argparse.Namespace) -> RunnerSettings:
    """``RunnerSettings`` from ``DJBOOTSTRAP_*`` variables, with CLI flags on top.

    Raises:
        ValueError: If an environment variable or flag holds an invalid value.
    """
    settings = RunnerSettings.from_env()
    overrides: dict[str, object] = {}
    if args.skip_system_packages:
        overrides["skip_system_packages"] = True
    if args.create_superuser:
        overrides["create_superuser"] = True
    if args.inline_secrets:
        overrides["inline_secrets"] = True
    if args.timeout is not None:
        overrides["command_timeout"] = args.timeout
    if overrides:
        settings = RunnerSettings.model_validate({**settings.model_dump(), **overrides})
    return settings


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``djbootstrap`` and ``python -m djbootstrap``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.directory:
        err_console.print("[bold red]Error:[/bold red] No directory specified.")
        err_console.print(f"Usage: {parser.prog} /path/to/your/project", highlight=False)
        sys.exit(1)

    deploy = args.deploy or env_flag("DEPLOY")

    try:
        settings = build_settings(args)
    except (ValueError, ValidationError) as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    if args.no_input:
        collect = partial(collect_from_mapping, args.directory, dict(os.environ), deploy)
    else:
        collect = partial(collect_interactive, args.directory, deploy)

    runner = LifecycleRunner(collect, settings=settings)
    try:
        report = asyncio.run(runner.run())
    except KeyboardInterrupt:
        err_console.print("[bold red]Interrupted.[/bold red]")
        sys.exit(1)

    if not report.success:
        console.print("[bold red]An error occurred. Exiting...[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
