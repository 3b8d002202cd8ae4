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

"""Implementation of `buildstage init` command.

Creates the configuration file and the cache, work, runs and local store
directories.
"""

from __future__ import annotations

import sys

from buildstage.config import ensure_config_exists, get_config_path, load_config
from buildstage.core.exceptions import ConfigError
from buildstage.core.run import RunContext, activity
from buildstage.paths import ensure_directories
from buildstage.spinner import activity_spinner
from buildstage.stage.errors import EXIT_CONFIG_ERROR
from buildstage.stage.settings import StageSettings


def init() -> None:
    """Initialize Buildstage configuration and directories."""
    with RunContext("init") as run:
        with activity_spinner("init", "Creating configuration"):
            ensure_config_exists()
            run.log_event({"event": "config.ensured", "path": str(get_config_path())})

        with activity_spinner("init", "Creating directories"):
            cfg = load_config()
            paths = ensure_directories(cfg)
            run.log_event({"event": "directories.created", "paths": {k: str(v) for k, v in paths.items()}})

        try:
            settings = StageSettings.from_config(cfg)
        except ConfigError as e:
            activity("init", f"ERROR: {e.message}")
            run.write_summary(status="failed", error=e.message, exit_code=EXIT_CONFIG_ERROR)
            sys.exit(EXIT_CONFIG_ERROR)

        activity("init", f"Config: {get_config_path()}")
        activity("init", f"Work dir: {settings.work_dir}")
        activity("init", f"Store backend: {settings.store_backend}")
        run.write_summary(config_path=str(get_config_path()), store_backend=settings.store_backend)
