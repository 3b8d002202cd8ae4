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

"""Logging helpers and exit codes shared by the staging round phases.

Every phase action logs both a human-readable activity line and a structured
event. The run context is optional so the controller can be driven without
a run directory (library use, tests).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from buildstage.core.run import activity

if TYPE_CHECKING:
    from buildstage.core.run import RunContext


def log_phase_event(
    run: RunContext | None,
    phase: str,
    message: str,
    event_key: str,
    **event_data: Any,
) -> None:
    """Log a phase activity message and structured event together.

    Args:
        run: RunContext for structured logging, or None.
        phase: Phase name for activity logging (e.g., "resume", "build").
        message: Human-readable message for activity output.
        event_key: Event key for structured logging (e.g., "resume.fetch").
        **event_data: Additional data to include in the log event.
    """
    activity(phase, message)
    if run is not None:
        run.log_event({"event": event_key, **event_data})


def phase_warning(
    run: RunContext | None,
    phase: str,
    message: str,
    *,
    event_key: str | None = None,
    **event_data: Any,
) -> None:
    """Log a phase warning without affecting the round's status."""
    activity(phase, f"Warning: {message}")
    if run is not None:
        run.log_event({
            "event": event_key or f"{phase}.warning",
            "message": message,
            **event_data,
        })


EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_LAUNCH_FAULT = 3
