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

"""Directory-backed artifact store.

Layout::

    <root>/artifacts/<ref>/artifact.json
    <root>/artifacts/<ref>/files/<file>
    <root>/.lock

Refs are increasing integers, matching what remote artifact services hand
out, so explicit refs behave the same against either backend.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import shutil
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

from buildstage.core.exceptions import ArtifactNotFoundError, StoreError
from buildstage.store.base import REF_PATTERN, StoredArtifact

logger = logging.getLogger(__name__)

METADATA_FILE = "artifact.json"


class LocalArtifactStore:
    """Artifact store kept in a local directory."""

    def __init__(self, root: Path, clock: Callable[[], datetime] | None = None) -> None:
        self.root = root
        self.artifacts_dir = root / "artifacts"
        self._clock = clock or (lambda: datetime.now(UTC))

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        self.root.mkdir(parents=True, exist_ok=True)
        with (self.root / ".lock").open("w") as fd:
            fcntl.flock(fd.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fd.fileno(), fcntl.LOCK_UN)

    def _artifact_dir(self, ref: str) -> Path:
        if not REF_PATTERN.fullmatch(ref):
            raise ArtifactNotFoundError(message=f"Artifact {ref!r} not found")
        return self.artifacts_dir / ref

    def _next_ref(self) -> str:
        existing = [int(p.name) for p in self.artifacts_dir.glob("*") if REF_PATTERN.fullmatch(p.name)]
        return str(max(existing, default=0) + 1)

    def _load(self, artifact_dir: Path) -> StoredArtifact | None:
        try:
            return StoredArtifact.from_dict(json.loads((artifact_dir / METADATA_FILE).read_text()))
        except (OSError, json.JSONDecodeError, KeyError):
            return None

    def store(self, name: str, paths: list[Path], retention_days: int, run_id: str = "") -> str:
        now = self._clock()
        try:
            with self._locked():
                self.artifacts_dir.mkdir(parents=True, exist_ok=True)
                ref = self._next_ref()
                files_dir = self.artifacts_dir / ref / "files"
                files_dir.mkdir(parents=True)
                for path in paths:
                    shutil.copy2(path, files_dir / path.name)
                artifact = StoredArtifact(
                    ref=ref,
                    name=name,
                    run_id=run_id,
                    created_at=now.isoformat(),
                    expires_at=(now + timedelta(days=retention_days)).isoformat(),
                    files=[p.name for p in paths],
                )
                # Metadata last: an artifact without it is invisible to listings.
                (self.artifacts_dir / ref / METADATA_FILE).write_text(json.dumps(artifact.to_dict(), indent=2))
        except OSError as e:
            raise StoreError(message=f"Failed to store {name}: {e}") from e
        logger.debug("Stored %s as ref %s (%d files)", name, ref, len(paths))
        return ref

    def fetch(self, ref: str, dest: Path) -> list[Path]:
        artifact_dir = self._artifact_dir(ref)
        artifact = self._load(artifact_dir)
        if artifact is None or artifact.is_expired(self._clock()):
            raise ArtifactNotFoundError(message=f"Artifact {ref} not found")

        dest.mkdir(parents=True, exist_ok=True)
        fetched: list[Path] = []
        try:
            for file_name in artifact.files:
                target = dest / file_name
                shutil.copy2(artifact_dir / "files" / file_name, target)
                fetched.append(target)
        except OSError as e:
            raise StoreError(message=f"Failed to fetch artifact {ref}: {e}") from e
        return fetched

    def list_by_name(self, name: str, run_id: str | None = None) -> list[StoredArtifact]:
        if not self.artifacts_dir.is_dir():
            return []
        found = []
        for artifact_dir in self.artifacts_dir.iterdir():
            artifact = self._load(artifact_dir)
            if artifact is None or artifact.name != name:
                continue
            if run_id is not None and artifact.run_id != run_id:
                continue
            found.append(artifact)
        return sorted(found, key=lambda a: int(a.ref))

    def delete(self, ref: str) -> None:
        artifact_dir = self._artifact_dir(ref)
        if not artifact_dir.exists():
            raise ArtifactNotFoundError(message=f"Artifact {ref} not found")
        try:
            shutil.rmtree(artifact_dir)
        except OSError as e:
            raise StoreError(message=f"Failed to delete artifact {ref}: {e}") from e
