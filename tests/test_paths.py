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


"""Tests for buildstage.paths module."""

from __future__ import annotations

from pathlib import Path

from buildstage import paths


class TestResolvePaths:
    """Tests for resolve_paths function."""

    def test_expands_and_resolves(self, temp_home: Path) -> None:
        cfg = {"paths": {"work_dir": "~/work", "runs_root": "~/runs/../runs"}}
        resolved = paths.resolve_paths(cfg)
        assert resolved["work_dir"] == (temp_home / "work").resolve()
        assert resolved["runs_root"] == (temp_home / "runs").resolve()

    def test_missing_section(self) -> None:
        assert paths.resolve_paths({}) == {}


class TestEnsureDirectories:
    """Tests for ensure_directories function."""

    def test_creates_required_directories(self, mock_config: Path, temp_home: Path) -> None:
        created = paths.ensure_directories()
        for key in paths.REQUIRED_PATHS:
            assert created[key].is_dir()
        assert created["work_dir"] == (temp_home / ".cache" / "buildstage" / "work").resolve()

    def test_uses_given_config(self, temp_home: Path) -> None:
        cfg = {"paths": {"work_dir": str(temp_home / "elsewhere")}}
        created = paths.ensure_directories(cfg)
        assert created["work_dir"].is_dir()
