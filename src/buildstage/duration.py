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

"""Duration parsing for retention, retry and staleness settings."""

from __future__ import annotations

import math
import re

DURATION_PATTERN = re.compile(r"^(\d+)\s*([smhdw])$", re.IGNORECASE)

UNIT_SECONDS: dict[str, int] = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}


def parse_duration(value: str | int) -> int:
    """Parse a duration such as ``10s``, ``6h`` or ``1d`` into seconds.

    Plain integers (from YAML) are taken as seconds already.

    Raises:
        ValueError: If the format is invalid.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Duration must not be negative: {value}")
        return value

    match = DURATION_PATTERN.match(str(value).strip())
    if not match:
        raise ValueError(f"Invalid duration format: '{value}'. Expected format like '10s', '6h', '1d'.")

    return int(match.group(1)) * UNIT_SECONDS[match.group(2).lower()]


def retention_days(value: str | int) -> int:
    """Convert a retention duration into whole days, rounding up.

    Artifact stores express retention in days, and a retention below one day
    still keeps the artifact for one day.
    """
    seconds = parse_duration(value)
    if seconds <= 0:
        raise ValueError(f"Retention must be positive: '{value}'")
    return max(1, math.ceil(seconds / UNIT_SECONDS["d"]))
