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

"""Artifact store backends and the checkpoint store client."""

from __future__ import annotations

from pathlib import Path

from buildstage.core.exceptions import ConfigError
from buildstage.store.base import CheckpointStore, StoredArtifact
from buildstage.store.client import (
    CheckpointStoreClient,
    FetchResult,
    PublishResult,
    Resolution,
    ResolveSource,
    normalize_ref,
)
from buildstage.store.http import HttpArtifactStore
from buildstage.store.local import LocalArtifactStore

BACKENDS = ("local", "http")


def open_store(
    backend: str,
    local_root: Path,
    url: str = "",
    token: str | None = None,
    timeout: int = 300,
) -> CheckpointStore:
    """Create the configured store backend.

    Raises:
        ConfigError: Unknown backend, or ``http`` without a URL.
    """
    if backend == "local":
        return LocalArtifactStore(local_root)
    if backend == "http":
        if not url:
            raise ConfigError(message="store.url is required for the http backend")
        return HttpArtifactStore(url, token=token, timeout=timeout)
    raise ConfigError(message=f"Unknown store backend '{backend}'. Expected one of: {', '.join(BACKENDS)}")


__all__ = [
    "BACKENDS",
    "CheckpointStore",
    "CheckpointStoreClient",
    "FetchResult",
    "HttpArtifactStore",
    "LocalArtifactStore",
    "PublishResult",
    "Resolution",
    "ResolveSource",
    "StoredArtifact",
    "normalize_ref",
    "open_store",
]
