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

"""Buildstage-specific exception types with associated exit codes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BuildstageError(Exception):
    """Base class for Buildstage errors with an exit code."""

    message: str = "An error occurred"
    exit_code: int = field(default=1)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.message} (exit {self.exit_code})"


@dataclass
class ConfigError(BuildstageError):
    exit_code: int = field(default=1)


@dataclass
class StoreError(BuildstageError):
    """A store operation failed; usually transient."""

    exit_code: int = field(default=2)
    status_code: int | None = None


@dataclass
class ArtifactNotFoundError(StoreError):
    """The store has no artifact for the requested ref or name."""


@dataclass
class RetryExhaustedError(BuildstageError):
    """An operation failed on every attempt of its retry budget."""

    exit_code: int = field(default=2)
    attempts: int = 0
    last_error: str = ""


@dataclass
class LaunchFaultError(BuildstageError):
    """The build process could not be started or did not exit on its own.

    ``outcome`` is filled in by the staging controller once the failure-path
    checkpoint has been attempted, so callers can still report it.
    """

    exit_code: int = field(default=3)
    outcome: Any = None


@dataclass
class BuildInterruptedError(LaunchFaultError):
    """The round was cancelled while the build was running."""


@dataclass
class ArchiveError(BuildstageError):
    exit_code: int = field(default=4)
