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

"""Implementation of `buildstage stage` command.

Runs one staging round and reports ``finished`` and ``resume_ref`` to the
scheduler that invoked it.
"""

from __future__ import annotations

import contextlib
import sys
from pathlib import Path

import typer

from buildstage.cancel import CancellationToken, cancel_on_signals
from buildstage.config import load_config
from buildstage.core.exceptions import ArchiveError, ConfigError, LaunchFaultError
from buildstage.core.run import RunContext, activity
from buildstage.retry import RetryPolicy
from buildstage.stage.controller import RoundOutcome, RoundRequest, RoundState, StagingController
from buildstage.stage.errors import EXIT_CONFIG_ERROR, EXIT_LAUNCH_FAULT
from buildstage.stage.runner import BuildStepRunner
from buildstage.stage.settings import StageSettings
from buildstage.store import CheckpointStoreClient, open_store
from buildstage.variants import Variant


def create_controller(
    settings: StageSettings,
    run: RunContext | None = None,
    build_log_dir: Path | None = None,
) -> StagingController:
    """Wire the store client, build runner and controller together."""
    store = open_store(
        settings.store_backend,
        local_root=settings.local_store or settings.scratch_dir.parent / "store",
        url=settings.store_url,
        token=settings.store_token,
        timeout=settings.store_timeout,
    )

    def _log_retry(description: str, attempt: int, error: Exception) -> None:
        activity("store", f"{description} failed (attempt {attempt}/{settings.retry_attempts}), retrying")
        if run is not None:
            run.log_event({"event": "store.retry", "operation": description, "attempt": attempt, "error": str(error)})

    client = CheckpointStoreClient(
        store,
        run_id=settings.run_id,
        retry=RetryPolicy(attempts=settings.retry_attempts, delay=settings.retry_delay),
        max_age_seconds=settings.max_checkpoint_age,
        on_retry=_log_retry,
    )
    runner = BuildStepRunner(settings, log_dir=build_log_dir)
    return StagingController(settings, client, runner, run=run)


def write_outputs(outcome: RoundOutcome, output_file: Path | None) -> None:
    """Print the scheduler outputs and append them to ``output_file``."""
    lines = [f"{key}={value}" for key, value in outcome.outputs().items()]
    for line in lines:
        with contextlib.suppress(Exception):
            print(line, file=sys.__stdout__, flush=True)
    if output_file is not None:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with output_file.open("a", encoding="utf-8") as f:
            f.write("".join(f"{line}\n" for line in lines))


def stage(
    finished: bool = typer.Option(False, "--finished/--no-finished", help="A previous round already finished the build"),
    resume: bool = typer.Option(False, "--resume/--no-resume", help="Resume from the latest checkpoint"),
    arch: str = typer.Option("default", help="Architecture: x86, arm or default (x64)"),
    simd: str = typer.Option("", help="SIMD level for x64 builds (default: avx2)"),
    checkpoint_ref: str = typer.Option("", help="Resume from this checkpoint ref instead of looking it up"),
    output_file: Path | None = typer.Option(None, help="Append finished=/resume_ref= lines to this file"),
    build_log: bool = typer.Option(False, help="Write build output to the run log directory"),
) -> None:
    """Run one staging round of the build.

    Resumes from a checkpoint when asked, runs the build once, then publishes
    either the final package or a checkpoint for the next round.

    Exit codes:
      0 - Round ran (check finished= to see whether the build is done)
      1 - Configuration/usage error
      3 - The build could not be started or was interrupted
      4 - The checkpoint could not be packed
    """
    try:
        variant = Variant.create(arch, simd or None)
    except ValueError as e:
        activity("stage", f"ERROR: {e}")
        raise typer.Exit(EXIT_CONFIG_ERROR) from None

    with RunContext("stage", label=variant.slug) as run:
        # A finished build reports completed without loading settings.
        if finished:
            outcome = RoundOutcome(completed=True, state=RoundState.COMPLETED, skipped=True)
            activity("stage", "Build already finished; nothing to do")
            run.log_event({"event": "round.skip", "variant": variant.slug})
            write_outputs(outcome, output_file)
            run.write_summary(variant=variant.to_dict(), finished_input=True, outcome=outcome.to_dict())
            return

        try:
            settings = StageSettings.from_config(load_config())
            controller = create_controller(
                settings,
                run=run,
                build_log_dir=run.logs_path if build_log else None,
            )
        except ConfigError as e:
            activity("stage", f"ERROR: {e.message}")
            run.log_event({"event": "config.error", "error": e.message})
            run.write_summary(status="failed", error=e.message, exit_code=EXIT_CONFIG_ERROR)
            sys.exit(EXIT_CONFIG_ERROR)

        request = RoundRequest(
            variant=variant,
            resume=resume,
            finished=finished,
            checkpoint_ref=checkpoint_ref or None,
        )
        run.write_summary(variant=variant.to_dict(), resume=resume, finished_input=finished)

        token = CancellationToken()
        try:
            with cancel_on_signals(token):
                outcome = controller.run_round(request, token)
        except LaunchFaultError as e:
            outcome = e.outcome if isinstance(e.outcome, RoundOutcome) else None
            if outcome is not None:
                write_outputs(outcome, output_file)
            activity("stage", f"ERROR: {e.message}")
            run.write_summary(
                status="failed",
                error=e.message,
                exit_code=EXIT_LAUNCH_FAULT,
                outcome=outcome.to_dict() if outcome else None,
            )
            sys.exit(EXIT_LAUNCH_FAULT)
        except ArchiveError as e:
            activity("stage", f"ERROR: {e.message}")
            run.write_summary(status="failed", error=e.message, exit_code=e.exit_code)
            sys.exit(e.exit_code)

        write_outputs(outcome, output_file)
        run.write_summary(outcome=outcome.to_dict())
        for warning in outcome.warnings:
            activity("stage", f"Warning: {warning}")
