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

"""Artifact store interface shared by the local and HTTP backends."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

# Refs are positive integers assigned by the store.
REF_PATTERN = re.compile(r"[0-9]+")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass
class StoredArtifact:
    """One published blob set as reported by the store."""

    ref: str
    name: str
    run_id: str = ""
    created_at: str = ""
    expires_at: str = ""
    files: list[str] = field(default_factory=list)

    def created(self) -> datetime | None:
        return _parse_time(self.created_at)

    def is_expired(self, now: datetime | None = None) -> bool:
        expires = _parse_time(self.expires_at)
        if expires is None:
            return False
        return (now or _utcnow()) >= expires

    def age_seconds(self, now: datetime | None = None) -> float | None:
        created = self.created()
        if created is None:
            return None
        return ((now or _utcnow()) - created).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ref": self.ref,
            "name": self.name,
            "run_id": self.run_id,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "files": self.files,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoredArtifact:
        """Create from dictionary."""
        return cls(
            ref=str(data.get("ref", data.get("id", ""))),
            name=data["name"],
            run_id=str(data.get("run_id", "") or ""),
            created_at=data.get("created_at", "") or "",
            expires_at=data.get("expires_at", "") or "",
            files=list(data.get("files", []) or []),
        )


class CheckpointStore(Protocol):
    """The four store operations the staging controller consumes.

    Backends raise ``StoreError`` for transient failures and
    ``ArtifactNotFoundError`` for unknown refs.
    """

    def store(self, name: str, paths: list[Path], retention_days: int, run_id: str = "") -> str:
        """Upload ``paths`` as one artifact and return its new ref."""
        ...

    def fetch(self, ref: str, dest: Path) -> list[Path]:
        """Download every file of artifact ``ref`` into ``dest``."""
        ...

    def list_by_name(self, name: str, run_id: str | None = None) -> list[StoredArtifact]:
        """List artifacts called ``name``; ``run_id`` restricts the scope."""
        ...

    def delete(self, ref: str) -> None:
        """Delete artifact ``ref``."""
        ...
