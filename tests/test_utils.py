"""Unit tests for utility functions (djbootstrap.utils).

Tests cover:
- run_command (success, failure, timeout, cwd, explicit env, capture=False)
- run_checked (echo, ExternalToolFailure)
- clean_environ, ensure_dir, write_text
- format_duration
- Rich output helpers
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from djbootstrap.errors import ExternalToolFailure
from djbootstrap.utils import (
    clean_environ,
    ensure_dir,
    format_duration,
    print_command,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
    run_checked,
    run_command,
    write_text,
)

PY = sys.executable


# ---------------------------------------------------------------------------
# run_command
# ---------------------------------------------------------------------------


class TestRunCommand:
    @pytest.mark.unit
    async def test_successful_command(self):
        returncode, stdout, stderr = await run_command([PY, "-c", "print('hello')"])
        assert returncode == 0
        assert stdout == "hello"
        assert stderr == ""

    @pytest.mark.unit
    async def test_failed_command(self):
        returncode, _, stderr = await run_command(
            [PY, "-c", "import sys; sys.stderr.write('bad'); sys.exit(3)"]
        )
        assert returncode == 3
        assert stderr == "bad"

    @pytest.mark.unit
    async def test_command_with_cwd(self, tmp_path: Path):
        returncode, stdout, _ = await run_command(
            [PY, "-c", "import os; print(os.getcwd())"], cwd=tmp_path
        )
        assert returncode == 0
        assert Path(stdout).resolve() == tmp_path.resolve()

    @pytest.mark.unit
    async def test_explicit_env_replaces_environment(self, monkeypatch):
        monkeypatch.setenv("DJB_AMBIENT", "ambient")
        env = clean_environ()
        env.pop("DJB_AMBIENT")
        env["DJB_EXPLICIT"] = "explicit"
        _, stdout, _ = await run_command(
            [PY, "-c", "import os; print(os.environ.get('DJB_AMBIENT'), os.environ['DJB_EXPLICIT'])"],
            env=env,
        )
        assert stdout == "None explicit"

    @pytest.mark.unit
    async def test_timeout(self):
        returncode, _, stderr = await run_command(
            [PY, "-c", "import time; time.sleep(10)"], timeout=0.5
        )
        assert returncode == -1
        assert "timed out" in stderr

    @pytest.mark.unit
    async def test_no_capture(self):
        returncode, stdout, stderr = await run_command(
            [PY, "-c", "pass"], capture=False
        )
        assert returncode == 0
        assert stdout == ""
        assert stderr == ""


class TestRunChecked:
    @pytest.mark.unit
    async def test_returns_stdout(self, capsys):
        out = await run_checked([PY, "-c", "print('ok')"])
        assert out == "ok"
        assert "-c" in capsys.readouterr().out

    @pytest.mark.unit
    async def test_raises_on_failure(self):
        with pytest.raises(ExternalToolFailure) as excinfo:
            await run_checked([PY, "-c", "import sys; sys.exit(2)"])
        assert excinfo.value.returncode == 2
        assert excinfo.value.command[0] == PY

    @pytest.mark.unit
    async def test_timeout_is_failure(self):
        with pytest.raises(ExternalToolFailure) as excinfo:
            await run_checked([PY, "-c", "import time; time.sleep(10)"], timeout=0.5)
        assert excinfo.value.returncode == -1


# ---------------------------------------------------------------------------
# Environment and file-system helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.unit
    def test_clean_environ_copies(self):
        base = {"A": "1", "PYTHONHOME": "/x"}
        env = clean_environ(base)
        assert env == {"A": "1"}
        assert base == {"A": "1", "PYTHONHOME": "/x"}

    @pytest.mark.unit
    def test_ensure_dir(self, tmp_path: Path):
        result = ensure_dir(tmp_path / "a" / "b")
        assert result.is_dir()
        assert ensure_dir(tmp_path / "a" / "b") == result

    @pytest.mark.unit
    def test_write_text_creates_parents(self, tmp_path: Path):
        path = write_text(tmp_path / "x" / "y.txt", "hi\n")
        assert path.read_text(encoding="utf-8") == "hi\n"

    @pytest.mark.unit
    def test_write_text_mode(self, tmp_path: Path):
        path = write_text(tmp_path / ".env", "A=1\n", mode=0o600)
        assert path.stat().st_mode & 0o777 == 0o600


class TestFormatDuration:
    @pytest.mark.unit
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "seconds, expected",
        [(3.7, "3.7s"), (65.2, "1m 5s"), (3661.0, "1h 1m 1s"), (-1, "0.0s"), (0, "0.0s")],
    )
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


class TestOutput:
    def test_messages(self, capsys):
        print_success("all good")
        print_warning("careful")
        print_error("broken")
        out = capsys.readouterr().out
        assert "all good" in out
        assert "careful" in out
        assert "broken" in out

    @pytest.mark.unit
    def test_stage_header(self, capsys):
        print_stage_header(3, "scaffold")
        assert "Stage 3: SCAFFOLD" in capsys.readouterr().out

    @pytest.mark.unit
    def test_command_with_brackets_is_not_markup(self, capsys):
        print_command(["pip", "install", "uvicorn[standard]"])
        assert "uvicorn[standard]" in capsys.readouterr().out

    @pytest.mark.unit
    def test_summary_table(self, capsys):
        print_summary_table({"Project": "blog"}, title="Plan")
        out = capsys.readouterr().out
        assert "Plan" in out
        assert "blog" in out
