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


"""Tests for buildstage init command."""

from __future__ import annotations

import json
from pathlib import Path

import yaml
from typer.testing import CliRunner

from buildstage.cli import app

runner = CliRunner()


class TestInit:
    """Tests for `buildstage init`."""

    def test_creates_config_and_directories(self, temp_home: Path) -> None:
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        config_file = temp_home / ".config" / "buildstage" / "config.yaml"
        assert yaml.safe_load(config_file.read_text())["build"]["parallelism"] == 2
        cache = temp_home / ".cache" / "buildstage"
        for name in ("work", "runs", "store"):
            assert (cache / name).is_dir()

    def test_keeps_existing_config(self, mock_config: Path) -> None:
        before = mock_config.read_text()
        runner.invoke(app, ["init"])
        assert mock_config.read_text() == before

    def test_records_run_summary(self, mock_config: Path, temp_home: Path) -> None:
        runner.invoke(app, ["init"])

        summaries = list((temp_home / ".cache" / "buildstage" / "runs").glob("*-init-*/summary.json"))
        assert len(summaries) == 1
        summary = json.loads(summaries[0].read_text())
        assert summary["status"] == "success"
        assert summary["store_backend"] == "local"

    def test_invalid_config_fails(self, mock_config: Path) -> None:
        cfg = yaml.safe_load(mock_config.read_text())
        cfg["retry"]["attempts"] = 0
        mock_config.write_text(yaml.safe_dump(cfg))

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 1
