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

"""Path helpers and directory creation for Buildstage."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from buildstage.config import load_config

REQUIRED_PATHS = ("cache_root", "work_dir", "runs_root", "local_store")


def resolve_paths(cfg: Mapping[str, Any]) -> dict[str, Path]:
    """Return resolved Path objects for configured paths."""
    paths: Mapping[str, Any] = cfg.get("paths", {})
    return {key: Path(str(val)).expanduser().resolve() for key, val in paths.items()}


def ensure_directories(cfg: Mapping[str, Any] | None = None) -> dict[str, Path]:
    """Ensure the cache, work, runs and local store directories exist.

    Returns a mapping of keys to Path objects that were created/ensured.
    """
    paths = resolve_paths(cfg if cfg is not None else load_config())
    for key in REQUIRED_PATHS:
        if key in paths:
            paths[key].mkdir(parents=True, exist_ok=True)
    return paths
