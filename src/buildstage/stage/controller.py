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

"""Staging controller: one resumable round of a long build.

A round moves through::

    IDLE -> [RESUMING] -> RUNNING -> COMPLETED | CHECKPOINTED | FAILED

- RESUMING is entered only when the caller asks for it. Any failure there
  (nothing to resolve, fetch error, corrupt payload) falls back to building
  from whatever the working tree holds.
- RUNNING invokes the build tool exactly once.
- COMPLETED publishes the final package.
- CHECKPOINTED packs the checkpoint subtree and publishes it for the next
  round.
- FAILED is CHECKPOINTED for a build that could not be started or was
  interrupted; the checkpoint is attempted and the original error is then
  re-raised with the outcome attached.

Store trouble never changes whether a round counts as completed; it only
adds warnings to the outcome.
"""

from __future__ import annotations

import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from buildstage.core.exceptions import ArchiveError, LaunchFaultError
from buildstage.spinner import activity_spinner
from buildstage.stage.archive import find_payload, pack, unpack
from buildstage.stage.errors import log_phase_event, phase_warning
from buildstage.store.client import ResolveSource

if TYPE_CHECKING:
    from buildstage.cancel import CancellationToken
    from buildstage.core.run import RunContext
    from buildstage.stage.runner import BuildResult, BuildStepRunner
    from buildstage.stage.settings import StageSettings
    from buildstage.store.client import CheckpointStoreClient
    from buildstage.variants import Variant


class RoundState(str, Enum):
    """States of a staging round."""

    IDLE = "idle"
    RESUMING = "resuming"
    RUNNING = "running"
    COMPLETED = "completed"
    CHECKPOINTED = "checkpointed"
    FAILED = "failed"


@dataclass(frozen=True)
class RoundRequest:
    """Inputs of one round, as given by the scheduler."""

    variant: Variant
    resume: bool = False
    finished: bool = False
    checkpoint_ref: str | None = None


@dataclass
class RoundOutcome:
    """What a round reports back to the scheduler.

    ``completed`` and ``resume_ref`` are the scheduler contract; the rest is
    for logs and the run summary.
    """

    completed: bool
    state: RoundState
    resume_ref: str = ""
    resumed_from: str = ""
    package_ref: str = ""
    package_files: list[str] = field(default_factory=list)
    exit_code: int | None = None
    skipped: bool = False
    warnings: list[str] = field(default_factory=list)

    def outputs(self) -> dict[str, str]:
        """Scheduler-facing outputs as strings."""
        return {
            "finished": "true" if self.completed else "false",
            "resume_ref": self.resume_ref,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/summary."""
        return {
            "completed": self.completed,
            "state": self.state.value,
            "resume_ref": self.resume_ref,
            "resumed_from": self.resumed_from,
            "package_ref": self.package_ref,
            "package_files": self.package_files,
            "exit_code": self.exit_code,
            "skipped": self.skipped,
            "warnings": self.warnings,
        }


class StagingController:
    """Run staging rounds for any variant.

    Args:
        settings: Validated staging settings.
        client: Checkpoint store client.
        runner: Build step runner.
        run: Optional RunContext receiving structured events.
        sleep: Sleep function used for the settle delay.
    """

    def __init__(
        self,
        settings: StageSettings,
        client: CheckpointStoreClient,
        runner: BuildStepRunner,
        run: RunContext | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.client = client
        self.runner = runner
        self.run = run
        self._sleep = sleep
        self.state = RoundState.IDLE
        self._warnings: list[str] = []

    def _enter(self, state: RoundState) -> None:
        if self.run is not None:
            self.run.log_event({"event": "round.state", "from": self.state.value, "to": state.value})
        self.state = state

    def _warn(self, phase: str, message: str, event_key: str, **event_data: Any) -> None:
        self._warnings.append(message)
        phase_warning(self.run, phase, message, event_key=event_key, **event_data)

    def _retry_progress(self, update: Callable[[str], None]) -> Callable[[str, int, Exception], None]:
        """Retry callback that shows the next attempt in the spinner."""

        def _on_retry(description: str, attempt: int, error: Exception) -> None:
            update(f"{description}: attempt {attempt} failed, retrying ({attempt + 1}/{self.client.retry.attempts})")

        return _on_retry

    def run_round(self, request: RoundRequest, token: CancellationToken | None = None) -> RoundOutcome:
        """Run one round and return its outcome.

        Raises:
            LaunchFaultError: The build could not be started or was
                interrupted. Raised after the checkpoint attempt, with
                ``outcome`` set.
            ArchiveError: The checkpoint subtree could not be packed after
                an ordinary build failure.
        """
        self.state = RoundState.IDLE
        self._warnings = []
        variant = request.variant

        if request.finished:
            log_phase_event(self.run, "stage", "Build already finished; nothing to do", "round.skip")
            self._enter(RoundState.COMPLETED)
            return RoundOutcome(completed=True, state=RoundState.COMPLETED, skipped=True)

        log_phase_event(
            self.run,
            "stage",
            f"Round for {variant} (resume={'yes' if request.resume else 'no'})",
            "round.start",
            variant=variant.to_dict(),
            resume=request.resume,
            checkpoint_ref=request.checkpoint_ref,
        )

        resumed_from = ""
        try:
            self.settings.work_dir.mkdir(parents=True, exist_ok=True)
            if request.resume:
                self._enter(RoundState.RESUMING)
                resumed_from = self._resume(request)
            if token is not None:
                token.raise_if_cancelled()

            self._enter(RoundState.RUNNING)
            result = self._build(variant, token)
            if token is not None:
                token.raise_if_cancelled()
        except LaunchFaultError as fault:
            fault.outcome = self._checkpoint_after_fault(variant, resumed_from, fault)
            raise
        except (Exception, KeyboardInterrupt) as fault:
            self._checkpoint_after_fault(variant, resumed_from, fault)
            raise

        if result.success:
            outcome = self._finalize(variant, result)
        else:
            outcome = self._checkpoint(variant, result)
        outcome.resumed_from = resumed_from

        log_phase_event(
            self.run,
            "stage",
            f"Round finished: {outcome.state.value}",
            "round.outcome",
            **outcome.to_dict(),
        )
        return outcome

    # -- resuming -----------------------------------------------------------

    def _resume(self, request: RoundRequest) -> str:
        """Restore the checkpoint subtree; return the ref used or ""."""
        name = request.variant.checkpoint_name
        resolution = self.client.resolve(name, request.checkpoint_ref)
        log_phase_event(
            self.run,
            "resume",
            f"Resolved {name}: {resolution.ref or 'nothing'} ({resolution.source.value})",
            "resume.resolve",
            name=name,
            ref=resolution.ref,
            source=resolution.source.value,
            error=resolution.error,
        )

        if resolution.source == ResolveSource.REJECTED:
            self._warn("resume", f"Rejected checkpoint ref: {resolution.error}", "resume.rejected")
        elif resolution.source == ResolveSource.UNAVAILABLE:
            self._warn("resume", f"Checkpoint lookup failed: {resolution.error}", "resume.unavailable")
        if not resolution.found:
            return self._fall_back("no checkpoint to resume from")

        ref = resolution.ref
        download_dir = self.settings.scratch_dir / "download" / ref
        shutil.rmtree(download_dir, ignore_errors=True)
        try:
            with activity_spinner("resume", f"Downloading checkpoint {ref}") as update:
                fetched = self.client.fetch(ref, download_dir, on_retry=self._retry_progress(update))
            if not fetched.success:
                self._warn("resume", f"Could not fetch checkpoint {ref}: {fetched.error}", "resume.fetch_failed")
                return self._fall_back("checkpoint download failed")
            log_phase_event(
                self.run,
                "resume",
                f"Downloaded checkpoint {ref} ({len(fetched.files)} files)",
                "resume.fetch",
                ref=ref,
                files=[p.name for p in fetched.files],
            )

            payload = find_payload(download_dir)
            if payload is None:
                self._warn("resume", f"Checkpoint {ref} holds no payload", "resume.payload_missing")
                return self._fall_back("checkpoint payload missing")

            try:
                with activity_spinner("resume", f"Unpacking checkpoint {ref} into {self.settings.checkpoint_dir}"):
                    members = unpack(payload, self.settings.checkpoint_dir)
            except (ArchiveError, OSError) as e:
                reason = e.message if isinstance(e, ArchiveError) else str(e)
                self._warn("resume", f"Checkpoint {ref} is unusable: {reason}", "resume.unpack_failed")
                return self._fall_back("checkpoint payload unusable")
        finally:
            shutil.rmtree(download_dir, ignore_errors=True)

        log_phase_event(
            self.run,
            "resume",
            f"Resumed from checkpoint {ref} ({members} entries)",
            "resume.unpack",
            ref=ref,
            members=members,
        )
        return ref

    def _fall_back(self, reason: str) -> str:
        log_phase_event(self.run, "resume", f"Starting fresh: {reason}", "resume.fallback", reason=reason)
        return ""

    # -- running ------------------------------------------------------------

    def _build(self, variant: Variant, token: CancellationToken | None) -> BuildResult:
        log_phase_event(self.run, "build", f"Building {variant}", "build.start", variant=variant.slug)
        result = self.runner.run(variant, self.settings.work_dir, token)
        log_phase_event(
            self.run,
            "build",
            f"Build exited with code {result.exit_code}",
            "build.exit",
            exit_code=result.exit_code,
            command=result.command,
            duration_seconds=round(result.duration_seconds, 1),
        )
        return result

    # -- completed ----------------------------------------------------------

    def _finalize(self, variant: Variant, result: BuildResult) -> RoundOutcome:
        self._enter(RoundState.COMPLETED)
        work_dir = self.settings.work_dir
        files = sorted(p for p in work_dir.glob(self.settings.package_glob) if p.is_file())
        outcome = RoundOutcome(
            completed=True,
            state=RoundState.COMPLETED,
            exit_code=result.exit_code,
            package_files=[str(p.relative_to(work_dir)) for p in files],
            warnings=self._warnings,
        )
        if not files:
            self._warn(
                "package",
                f"No outputs match '{self.settings.package_glob}'; nothing to publish",
                "package.empty",
            )
            return outcome

        name = variant.package_name
        with activity_spinner("package", f"Publishing {name} ({len(files)} files)") as update:
            published = self.client.publish(
                name, files, self.settings.package_retention_days, on_retry=self._retry_progress(update)
            )
        if not published.success:
            self._warn(
                "package",
                f"Build completed but package {name} was not uploaded: {published.error}",
                "package.publish_failed",
                attempts=published.attempts,
            )
            return outcome

        outcome.package_ref = published.ref or ""
        log_phase_event(
            self.run,
            "package",
            f"Published {name} as {published.ref}",
            "package.publish",
            name=name,
            ref=published.ref,
            attempts=published.attempts,
            superseded=published.superseded,
            files=outcome.package_files,
        )

        discarded = self.client.discard(variant.checkpoint_name)
        if discarded:
            log_phase_event(
                self.run,
                "package",
                f"Discarded checkpoint(s) {', '.join(discarded)}",
                "checkpoint.discard",
                refs=discarded,
            )
        return outcome

    # -- checkpointed / failed ----------------------------------------------

    def _checkpoint(self, variant: Variant, result: BuildResult | None) -> RoundOutcome:
        """Pack and publish the checkpoint subtree.

        Raises:
            ArchiveError: The subtree could not be packed.
        """
        if self.state != RoundState.FAILED:
            self._enter(RoundState.CHECKPOINTED)
        outcome = RoundOutcome(
            completed=False,
            state=self.state,
            exit_code=result.exit_code if result is not None else None,
            warnings=self._warnings,
        )

        if self.settings.settle_delay > 0:
            log_phase_event(
                self.run,
                "checkpoint",
                f"Waiting {self.settings.settle_delay:g}s for build writes to settle",
                "checkpoint.settle",
                seconds=self.settings.settle_delay,
            )
            self._sleep(self.settings.settle_delay)

        upload_dir = self.settings.scratch_dir / "upload"
        with activity_spinner("checkpoint", f"Packing {self.settings.checkpoint_dir}"):
            packed = pack(self.settings.checkpoint_dir, upload_dir)
        log_phase_event(
            self.run,
            "checkpoint",
            f"Packed {packed.member_count} entries ({packed.size} bytes)",
            "checkpoint.pack",
            path=str(packed.path),
            sha256=packed.sha256,
            size=packed.size,
        )

        name = variant.checkpoint_name
        try:
            with activity_spinner("checkpoint", f"Publishing {name}") as update:
                published = self.client.publish(
                    name,
                    [packed.path],
                    self.settings.checkpoint_retention_days,
                    on_retry=self._retry_progress(update),
                )
        finally:
            packed.path.unlink(missing_ok=True)

        if not published.success:
            self._warn(
                "checkpoint",
                f"Checkpoint {name} was not saved; the next round cannot resume from this one: {published.error}",
                "checkpoint.publish_failed",
                attempts=published.attempts,
            )
            return outcome

        outcome.resume_ref = published.ref or ""
        log_phase_event(
            self.run,
            "checkpoint",
            f"Published {name} as {published.ref}",
            "checkpoint.publish",
            name=name,
            ref=published.ref,
            attempts=published.attempts,
            superseded=published.superseded,
        )
        return outcome

    def _checkpoint_after_fault(
        self, variant: Variant, resumed_from: str, fault: BaseException
    ) -> RoundOutcome:
        """Checkpoint after an exception, without masking the exception."""
        self._enter(RoundState.FAILED)
        log_phase_event(
            self.run,
            "build",
            f"Build did not run to completion: {fault}",
            "build.fault",
            error=str(fault),
            error_type=type(fault).__name__,
        )
        try:
            outcome = self._checkpoint(variant, None)
        except Exception as e:
            reason = e.message if isinstance(e, ArchiveError) else str(e)
            self._warn("checkpoint", f"Could not save checkpoint: {reason}", "checkpoint.pack_failed")
            outcome = RoundOutcome(completed=False, state=RoundState.FAILED, warnings=self._warnings)
        outcome.resumed_from = resumed_from
        log_phase_event(self.run, "stage", "Round failed", "round.outcome", **outcome.to_dict())
        return outcome
