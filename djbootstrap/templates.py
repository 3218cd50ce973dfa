"""Jinja2 template rendering for the generated Django project.

Provides the ``TemplateRenderer`` class which loads the ``.j2`` blueprints
shipped in ``djbootstrap/templates/`` and renders them against a
``ScaffoldConfig``.  Rendering is pure: the same config always yields the same
text, and nothing is written unless ``render_to_file`` is called.

Undefined placeholders raise ``jinja2.UndefinedError`` instead of rendering as
empty strings.  The database password is only placed in the context of the
templates allowed to contain it.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from djbootstrap.config import RunnerSettings, ScaffoldConfig
from djbootstrap.utils import write_text

# ---------------------------------------------------------------------------
# Template registry
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

GCP_PROJECT_PLACEHOLDER = "YOUR_GCP_PROJECT_ID"

# Logical name -> template file
TEMPLATES: dict[str, str] = {
    "settings_env": "settings_env.py.j2",
    "settings_static": "settings_static.py.j2",
    "installed_app": "installed_app.py.j2",
    "env_file": "env.j2",
    "dockerfile": "Dockerfile.j2",
    "compose": "docker-compose.yml.j2",
    "cloudbuild": "cloudbuild.yaml.j2",
    "gitignore": "gitignore.j2",
}

# Deployment artifacts, in emission order: logical name -> output file name
DEPLOYMENT_ARTIFACTS: dict[str, str] = {
    "dockerfile": "Dockerfile",
    "compose": "docker-compose.yml",
    "cloudbuild": "cloudbuild.yaml",
}


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders the project blueprints for one ``ScaffoldConfig``."""

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["compose_str"] = _compose_str_filter

    # -- Context -----------------------------------------------------------

    @staticmethod
    def build_context(
        name: str,
        config: ScaffoldConfig,
        settings: RunnerSettings | None = None,
    ) -> dict[str, Any]:
        """Return the variables visible to template *name*."""
        settings = settings or RunnerSettings()
        context: dict[str, Any] = {
            "project_name": config.project_name,
            "app_name": config.app_name,
            "db_name": config.db_name,
            "db_user": config.db_user,
            "db_host": settings.db_host,
            "db_port": settings.db_port,
            "venv_dir": settings.venv_dir,
            "inline_secrets": settings.inline_secrets,
            "gcp_project_placeholder": GCP_PROJECT_PLACEHOLDER,
        }
        if name == "env_file" or (name == "compose" and settings.inline_secrets):
            context["db_password"] = config.db_password.get_secret_value()
        return context

    # -- Rendering ---------------------------------------------------------

    def render(
        self,
        name: str,
        config: ScaffoldConfig,
        settings: RunnerSettings | None = None,
    ) -> str:
        """Render the logical template *name* for *config*.

        Raises:
            KeyError: If *name* is not a known template.
            jinja2.UndefinedError: If the template references a variable the
                context does not provide.
        """
        if name not in TEMPLATES:
            raise KeyError(f"Unknown template: {name!r}")
        template = self.env.get_template(TEMPLATES[name])
        return template.render(**self.build_context(name, config, settings))

    def render_to_file(
        self,
        name: str,
        output_path: str | Path,
        config: ScaffoldConfig,
        settings: RunnerSettings | None = None,
        mode: int | None = None,
    ) -> Path:
        """Render a template and write the result to *output_path*."""
        return write_text(output_path, self.render(name, config, settings), mode=mode)

    def list_templates(self) -> list[str]:
        """Return the sorted logical template names."""
        return sorted(TEMPLATES)


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------


def _compose_str_filter(value: Any) -> str:
    """Quote *value* as a YAML string that Compose will not interpolate."""
    return json.dumps(str(value).replace("$", "$$"), ensure_ascii=False)
