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


"""Tests for the `buildstage names` command."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from buildstage.cli import app

runner = CliRunner()


class TestNames:
    """Tests for `buildstage names`."""

    def test_single_variant_json(self) -> None:
        result = runner.invoke(app, ["names", "--arch", "default", "--simd", "sse3", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output) == [
            {
                "arch": "default",
                "simd": "sse3",
                "checkpoint_name": "build-checkpoint-x64-sse3",
                "package_name": "chromium-x64-sse3",
            }
        ]

    def test_all_variants_json(self) -> None:
        result = runner.invoke(app, ["names", "--json"])

        names = [entry["package_name"] for entry in json.loads(result.output)]
        assert names == ["chromium-x86", "chromium-arm64", "chromium-x64-avx2"]

    def test_table(self) -> None:
        result = runner.invoke(app, ["names", "--arch", "arm"])
        assert result.exit_code == 0
        assert "build-checkpoint-arm64" in result.output

    def test_unknown_arch(self) -> None:
        result = runner.invoke(app, ["names", "--arch", "sparc"])
        assert result.exit_code == 1
