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

"""Staging rounds: archive adapter, build runner and controller."""

# Archive adapter
from buildstage.stage.archive import (
    PAYLOAD_NAME,
    PackResult,
    compute_sha256,
    find_payload,
    pack,
    unpack,
)

# Controller
from buildstage.stage.controller import (
    RoundOutcome,
    RoundRequest,
    RoundState,
    StagingController,
)

# Logging helpers and exit codes
from buildstage.stage.errors import (
    EXIT_CONFIG_ERROR,
    EXIT_LAUNCH_FAULT,
    EXIT_SUCCESS,
    log_phase_event,
    phase_warning,
)

# Build runner
from buildstage.stage.runner import BuildResult, BuildStepRunner, build_command

# Settings
from buildstage.stage.settings import StageSettings

__all__ = [
    "EXIT_CONFIG_ERROR",
    "EXIT_LAUNCH_FAULT",
    "EXIT_SUCCESS",
    "PAYLOAD_NAME",
    "BuildResult",
    "BuildStepRunner",
    "PackResult",
    "RoundOutcome",
    "RoundRequest",
    "RoundState",
    "StageSettings",
    "StagingController",
    "build_command",
    "compute_sha256",
    "find_payload",
    "log_phase_event",
    "pack",
    "phase_warning",
    "unpack",
]
