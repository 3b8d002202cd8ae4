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

"""Validated staging settings built from the configuration mapping."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from buildstage.core.exceptions import ConfigError
from buildstage.duration import parse_duration, retention_days
from buildstage.paths import resolve_paths
from buildstage.store import BACKENDS


@dataclass(frozen=True)
class StageSettings:
    """Everything a staging round needs from configuration.

    Attributes:
        work_dir: Build working directory, owned by the running round.
        scratch_dir: Where payloads are packed and downloads land.
        checkpoint_subdir: Subtree of work_dir that forms the checkpoint.
        package_glob: Glob (relative to work_dir) matching final outputs.
        build_command: Build tool argv, before round-specific flags.
        ci_flag: Flag telling the build tool it runs unattended.
        parallelism: Parallel job hint for the build tool.
        checkpoint_retention_days: Store retention for checkpoints.
        package_retention_days: Store retention for final packages.
        retry_attempts: Store attempts per operation.
        retry_delay: Seconds between store attempts.
        settle_delay: Seconds to wait before packing on the failure path.
        max_checkpoint_age: Age bound in seconds for historical checkpoints.
        store_backend: "local" or "http".
        store_url: Base URL of the http backend.
        store_token: Bearer token for the http backend.
        store_timeout: HTTP timeout in seconds.
        local_store: Root of the local backend.
        run_id: Current execution context, read from the environment.
    """

    work_dir: Path
    scratch_dir: Path
    checkpoint_subdir: str = "build"
    package_glob: str = "build/chromium*"
    build_command: tuple[str, ...] = ("python", "build.py")
    ci_flag: str = "--ci"
    parallelism: int = 2
    checkpoint_retention_days: int = 1
    package_retention_days: int = 30
    retry_attempts: int = 5
    retry_delay: float = 10.0
    settle_delay: float = 5.0
    max_checkpoint_age: int | None = 7 * 86400
    store_backend: str = "local"
    store_url: str = ""
    store_token: str | None = field(default=None, repr=False)
    store_timeout: int = 300
    local_store: Path | None = None
    run_id: str = ""

    @property
    def checkpoint_dir(self) -> Path:
        return self.work_dir / self.checkpoint_subdir

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any], environ: Mapping[str, str] | None = None) -> StageSettings:
        """Validate ``cfg`` (as returned by load_config) into settings.

        Raises:
            ConfigError: A value is missing or invalid.
        """
        env = os.environ if environ is None else environ
        paths = resolve_paths(cfg)
        store = cfg.get("store", {})
        build = cfg.get("build", {})
        retention = cfg.get("retention", {})
        retry = cfg.get("retry", {})
        resume = cfg.get("resume", {})

        try:
            command = build.get("command", ["python", "build.py"])
            if isinstance(command, str):
                command = command.split()
            if not command:
                raise ValueError("build.command must not be empty")

            subdir = str(build.get("checkpoint_subdir", "build")).strip().strip("/")
            if not subdir or ".." in Path(subdir).parts:
                raise ValueError(f"build.checkpoint_subdir must be a relative subdirectory, got '{subdir}'")

            parallelism = int(build.get("parallelism", 2))
            attempts = int(retry.get("attempts", 5))
            if parallelism < 1 or attempts < 1:
                raise ValueError("build.parallelism and retry.attempts must be at least 1")

            max_age_raw = resume.get("max_checkpoint_age", "7d")
            max_age = None if max_age_raw in (None, "", "none") else parse_duration(max_age_raw)

            backend = str(store.get("backend", "local"))
            if backend not in BACKENDS:
                raise ValueError(f"store.backend must be one of {', '.join(BACKENDS)}, got '{backend}'")

            cache_root = paths.get("cache_root", Path.home() / ".cache" / "buildstage")
            return cls(
                work_dir=paths.get("work_dir", cache_root / "work"),
                scratch_dir=cache_root / "scratch",
                checkpoint_subdir=subdir,
                package_glob=str(build.get("package_glob", "build/chromium*")),
                build_command=tuple(str(part) for part in command),
                ci_flag=str(build.get("ci_flag", "--ci") or ""),
                parallelism=parallelism,
                checkpoint_retention_days=retention_days(retention.get("checkpoint", "1d")),
                package_retention_days=retention_days(retention.get("package", "30d")),
                retry_attempts=attempts,
                retry_delay=float(parse_duration(retry.get("delay", "10s"))),
                settle_delay=float(parse_duration(build.get("settle_delay", "5s"))),
                max_checkpoint_age=max_age,
                store_backend=backend,
                store_url=str(store.get("url", "") or ""),
                store_token=env.get(str(store.get("token_env", ""))) or None,
                store_timeout=int(store.get("timeout", 300)),
                local_store=paths.get("local_store", cache_root / "store"),
                run_id=env.get(str(store.get("run_id_env", "")), ""),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(message=f"Invalid configuration: {e}") from e
