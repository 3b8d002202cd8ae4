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

"""Build step runner.

Runs the external build tool once, in the round's working directory, and
reports nothing but its exit status. Output is either inherited (so it shows
up in the CI job log) or written to log files; it is never parsed.
"""

from __future__ import annotations

import contextlib
import logging
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from buildstage.core.exceptions import BuildInterruptedError, LaunchFaultError

if TYPE_CHECKING:
    from buildstage.cancel import CancellationToken
    from buildstage.stage.settings import StageSettings
    from buildstage.variants import Variant

logger = logging.getLogger(__name__)

# Seconds the build gets to exit after SIGTERM before it is killed.
TERMINATE_GRACE = 30.0


@dataclass
class BuildResult:
    """Result of one build invocation."""

    exit_code: int
    command: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    stdout_log_path: Path | None = None
    stderr_log_path: Path | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def build_command(settings: StageSettings, variant: Variant) -> list[str]:
    """Build the full build tool command line for ``variant``.

    Layout: ``<command...> [ci flag] -j <parallelism> <variant flags...>``.
    """
    cmd = list(settings.build_command)
    if settings.ci_flag:
        cmd.append(settings.ci_flag)
    cmd.extend(["-j", str(settings.parallelism)])
    cmd.extend(variant.build_flags())
    return cmd


class BuildStepRunner:
    """Invoke the build tool and wait for it, honouring cancellation."""

    def __init__(
        self,
        settings: StageSettings,
        log_dir: Path | None = None,
        poll_interval: float = 1.0,
    ) -> None:
        self.settings = settings
        self.log_dir = log_dir
        self.poll_interval = poll_interval

    def run(
        self,
        variant: Variant,
        working_dir: Path,
        token: CancellationToken | None = None,
    ) -> BuildResult:
        """Run the build for ``variant`` in ``working_dir``.

        Returns:
            BuildResult; a non-zero exit code means "not finished yet".

        Raises:
            LaunchFaultError: The build tool could not be started.
            BuildInterruptedError: The round was cancelled (or the caller
                got a KeyboardInterrupt) before the build exited.
        """
        cmd = build_command(self.settings, variant)
        stdout_log = stderr_log = None
        start = time.monotonic()

        with contextlib.ExitStack() as stack:
            stdout_target = stderr_target = None
            if self.log_dir is not None:
                self.log_dir.mkdir(parents=True, exist_ok=True)
                stdout_log = self.log_dir / "build.stdout.log"
                stderr_log = self.log_dir / "build.stderr.log"
                stdout_target = stack.enter_context(stdout_log.open("w", encoding="utf-8"))
                stderr_target = stack.enter_context(stderr_log.open("w", encoding="utf-8"))

            logger.info("Running build: %s (cwd=%s)", " ".join(cmd), working_dir)
            try:
                proc = subprocess.Popen(cmd, cwd=working_dir, stdout=stdout_target, stderr=stderr_target)
            except OSError as e:
                raise LaunchFaultError(message=f"Could not start build tool {cmd[0]!r}: {e}") from e

            exit_code = self._wait(proc, token)

        return BuildResult(
            exit_code=exit_code,
            command=cmd,
            duration_seconds=time.monotonic() - start,
            stdout_log_path=stdout_log,
            stderr_log_path=stderr_log,
        )

    def _wait(self, proc: subprocess.Popen, token: CancellationToken | None) -> int:
        try:
            while True:
                try:
                    exit_code = proc.wait(timeout=self.poll_interval)
                except subprocess.TimeoutExpired:
                    if token is not None and token.cancelled:
                        self._stop(proc)
                        raise BuildInterruptedError(message=f"Build interrupted: {token.reason}") from None
                    continue
                # The signal that tripped the token usually reached the build too.
                if token is not None and token.cancelled:
                    raise BuildInterruptedError(
                        message=f"Build interrupted: {token.reason} (build exited with code {exit_code})"
                    )
                return exit_code
        except KeyboardInterrupt as e:
            self._stop(proc)
            raise BuildInterruptedError(message="Build interrupted by keyboard interrupt") from e

    def _stop(self, proc: subprocess.Popen) -> None:
        if proc.poll() is not None:
            return
        logger.warning("Terminating build process %d", proc.pid)
        proc.terminate()
        try:
            proc.wait(timeout=TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
