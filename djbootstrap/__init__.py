"""djbootstrap -- bootstrap a Django + PostgreSQL project in one command.

Quick usage::

    import asyncio

    from djbootstrap import LifecycleRunner
    from djbootstrap.collector import collect_interactive

    runner = LifecycleRunner(lambda: collect_interactive("/tmp/demo"))
    report = asyncio.run(runner.run())
"""

from djbootstrap.config import RunnerSettings, ScaffoldConfig
from djbootstrap.patcher import Patch, PatchOutcome, PatchStatus, apply_patch
from djbootstrap.runner import LifecycleRunner, RunReport, Stage, StageResult
from djbootstrap.templates import TemplateRenderer

__version__ = "0.1.0"

__all__ = [
    "LifecycleRunner",
    "Patch",
    "PatchOutcome",
    "PatchStatus",
    "RunReport",
    "RunnerSettings",
    "ScaffoldConfig",
    "Stage",
    "StageResult",
    "TemplateRenderer",
    "apply_patch",
]
