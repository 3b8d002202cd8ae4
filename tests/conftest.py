# This file is part of Buildstage, a tool for staging long builds across time-boxed runs.
#
# Copyright 2025 Canonical Ltd.
#
# SPDX-License-Identifier: GPL-3.0-only
#
# Buildstage is free software: you can redistribute it and/or modify it under
# the terms of the GNU General Public License version 3, as published by the
# Free Software Foundation.
#
# Buildstage is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranties of MERCHANTABILITY,
# SATISFACTORY QUALITY, or FITNESS FOR A PARTICULAR PURPOSE. See the GNU
# General Public License for more details.
#
# You should have received a copy of the GNU General Public License along with
# Buildstage. If not, see <http://www.gnu.org/licenses/>.


"""Pytest fixtures and configuration for Buildstage tests."""

from __future__ import annotations

import sys
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from unittest import mock

import pytest
import responses
import yaml

from buildstage.stage.settings import StageSettings
from buildstage.variants import Variant

# Build tool stand-ins. Each runs with the work dir as cwd and ignores argv.
_SUCCEEDING_BUILD = """\
import pathlib
out = pathlib.Path("build")
(out / "obj").mkdir(parents=True, exist_ok=True)
(out / "obj" / "main.o").write_text("object")
(out / "chromium-x64-avx2.zip").write_text("package")
"""

_FAILING_BUILD = """\
import pathlib, sys
out = pathlib.Path("build") / "obj"
out.mkdir(parents=True, exist_ok=True)
(out / "partial.o").write_text("partial")
sys.exit(1)
"""


@pytest.fixture
def temp_home(monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Create a temporary home directory and set HOME/XDG paths."""
    with tempfile.TemporaryDirectory() as tmpdir:
        home = Path(tmpdir)
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
        monkeypatch.setenv("XDG_CACHE_HOME", str(home / ".cache"))
        monkeypatch.delenv("BUILDSTAGE_RUN_ID", raising=False)
        monkeypatch.delenv("BUILDSTAGE_STORE_TOKEN", raising=False)
        # Also patch Path.home() to return our temp home
        monkeypatch.setattr(Path, "home", lambda: home)
        yield home


@pytest.fixture
def mock_config(temp_home: Path) -> Path:
    """Create a minimal config file in the temp home."""
    config_dir = temp_home / ".config" / "buildstage"
    config_dir.mkdir(parents=True, exist_ok=True)
    config_file = config_dir / "config.yaml"
    config_file.write_text("""
paths:
  cache_root: "~/.cache/buildstage"
  work_dir: "~/.cache/buildstage/work"
  runs_root: "~/.cache/buildstage/runs"
  local_store: "~/.cache/buildstage/store"

store:
  backend: "local"

retry:
  attempts: 2
  delay: "0s"

build:
  command: ["python", "build.py"]
  settle_delay: "0s"
""")
    return config_file


@pytest.fixture
def build_config(mock_config: Path, temp_home: Path) -> Callable[[str], Path]:
    """Return a function pointing the configured build command at a script.

    The script body runs under the current interpreter; the path of the
    written script is returned.
    """

    def _configure(body: str) -> Path:
        script = temp_home / "build_tool.py"
        script.write_text(body)
        cfg = yaml.safe_load(mock_config.read_text())
        cfg["build"]["command"] = [sys.executable, str(script)]
        mock_config.write_text(yaml.safe_dump(cfg))
        return script

    return _configure


@pytest.fixture
def succeeding_build() -> str:
    """Build script that leaves a final package under build/."""
    return _SUCCEEDING_BUILD


@pytest.fixture
def failing_build() -> str:
    """Build script that leaves partial objects and exits 1."""
    return _FAILING_BUILD


@pytest.fixture
def stage_settings(tmp_path: Path) -> StageSettings:
    """Settings rooted in tmp_path with no retry or settle delays."""
    return StageSettings(
        work_dir=tmp_path / "work",
        scratch_dir=tmp_path / "scratch",
        retry_delay=0.0,
        settle_delay=0.0,
        local_store=tmp_path / "store",
    )


@pytest.fixture
def sse3_variant() -> Variant:
    return Variant.create("default", "sse3")


@pytest.fixture
def mock_responses() -> Generator[responses.RequestsMock, None, None]:
    """Activate responses mock for HTTP requests."""
    with responses.RequestsMock() as rsps:
        yield rsps


@pytest.fixture
def non_tty_stdout(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mock sys.__stdout__.isatty() to return False."""
    mock_stdout = mock.MagicMock()
    mock_stdout.isatty.return_value = False
    monkeypatch.setattr("sys.__stdout__", mock_stdout)


@pytest.fixture
def tty_stdout(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mock sys.__stdout__.isatty() to return True."""
    mock_stdout = mock.MagicMock()
    mock_stdout.isatty.return_value = True
    mock_stdout.write = lambda x: None
    mock_stdout.flush = lambda: None
    monkeypatch.setattr("sys.__stdout__", mock_stdout)
