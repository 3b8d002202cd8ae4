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


"""Tests for buildstage.core.run module."""

from __future__ import annotations

import json
import re
import sys
from pathlib import Path

import pytest

from buildstage.core import run


def _events(ctx: run.RunContext) -> list[dict]:
    lines = (ctx.logs_path / "events.jsonl").read_text().strip().split("\n")
    return [json.loads(line) for line in lines]


class TestRunContext:
    """Tests for RunContext class."""

    def test_creates_run_directory_under_runs_root(self, mock_config: Path, temp_home: Path) -> None:
        with run.RunContext("stage") as ctx:
            assert ctx.run_path.is_dir()
        assert ctx.run_path.parent == (temp_home / ".cache" / "buildstage" / "runs").resolve()

    def test_run_id_format(self, mock_config: Path) -> None:
        with run.RunContext("stage", label="x64-sse3") as ctx:
            assert re.match(r"^\d{8}T\d{6}Z-stage-x64-sse3-[a-f0-9]{8}$", ctx.run_id)

    def test_run_id_without_label(self, mock_config: Path) -> None:
        with run.RunContext("init") as ctx:
            assert re.match(r"^\d{8}T\d{6}Z-init-[a-f0-9]{8}$", ctx.run_id)

    def test_captures_stdout_and_stderr(self, mock_config: Path) -> None:
        with run.RunContext("stage") as ctx:
            print("to stdout")
            print("to stderr", file=sys.stderr)

        assert "to stdout" in (ctx.logs_path / "stdout.log").read_text()
        assert "to stderr" in (ctx.logs_path / "stderr.log").read_text()

    def test_restores_streams(self, mock_config: Path) -> None:
        original_stdout, original_stderr = sys.stdout, sys.stderr
        with run.RunContext("stage"):
            pass
        assert sys.stdout is original_stdout
        assert sys.stderr is original_stderr

    def test_events_are_timestamped_jsonl(self, mock_config: Path) -> None:
        with run.RunContext("stage") as ctx:
            ctx.log_event({"event": "round.start", "resume": True})

        events = _events(ctx)
        assert [e["event"] for e in events] == ["run.start", "round.start", "run.end"]
        assert all("timestamp" in e for e in events)
        assert events[1]["resume"] is True

    def test_summary_on_success(self, mock_config: Path) -> None:
        with run.RunContext("stage") as ctx:
            ctx.write_summary(outcome={"completed": True})

        summary = json.loads((ctx.run_path / "summary.json").read_text())
        assert summary["command"] == "stage"
        assert summary["status"] == "success"
        assert summary["outcome"] == {"completed": True}
        assert "start_utc" in summary
        assert "end_utc" in summary

    def test_summary_records_failure_on_exception(self, mock_config: Path) -> None:
        with pytest.raises(ValueError), run.RunContext("stage") as ctx:
            raise ValueError("disk on fire")

        summary = json.loads((ctx.run_path / "summary.json").read_text())
        assert summary["status"] == "failed"
        assert "disk on fire" in summary["error"]

    def test_nonzero_exit_marks_failed(self, mock_config: Path) -> None:
        with pytest.raises(SystemExit), run.RunContext("stage") as ctx:
            sys.exit(3)

        summary = json.loads((ctx.run_path / "summary.json").read_text())
        assert summary["status"] == "failed"

    def test_zero_exit_keeps_success(self, mock_config: Path) -> None:
        with pytest.raises(SystemExit), run.RunContext("stage") as ctx:
            sys.exit(0)

        summary = json.loads((ctx.run_path / "summary.json").read_text())
        assert summary["status"] == "success"

    def test_explicit_failed_status_is_kept(self, mock_config: Path) -> None:
        with run.RunContext("stage") as ctx:
            ctx.write_summary(status="failed")

        summary = json.loads((ctx.run_path / "summary.json").read_text())
        assert summary["status"] == "failed"
        assert _events(ctx)[-1]["status"] == "failed"


class TestActivity:
    """Tests for activity function."""

    def test_writes_to_real_stdout(self, non_tty_stdout: None) -> None:
        activity_out = sys.__stdout__
        run.activity("stage", "hello")
        activity_out.write.assert_called()
        written = "".join(call.args[0] for call in activity_out.write.call_args_list)
        assert "[stage] hello" in written
