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

"""Checkpoint store client: name resolution and retried store access.

The store is treated as unreliable and possibly inconsistent. Nothing in
this module raises for store trouble; every operation reports failure in
its result so the controller can degrade (start fresh, warn) instead of
aborting the round.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from buildstage.core.exceptions import ArtifactNotFoundError, RetryExhaustedError, StoreError
from buildstage.retry import RetryPolicy
from buildstage.store.base import REF_PATTERN, CheckpointStore, StoredArtifact

logger = logging.getLogger(__name__)

RetryCallback = Callable[[str, int, Exception], None]


class ResolveSource(str, Enum):
    """Where a resolved ref came from."""

    EXPLICIT = "explicit"
    CURRENT = "current"
    HISTORY = "history"
    REJECTED = "rejected"
    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not_found"


@dataclass
class Resolution:
    """Result of resolving a checkpoint name."""

    ref: str | None
    source: ResolveSource
    error: str = ""

    @property
    def found(self) -> bool:
        return self.ref is not None


@dataclass
class FetchResult:
    """Result of downloading an artifact."""

    success: bool
    files: list[Path] = field(default_factory=list)
    error: str = ""


@dataclass
class PublishResult:
    """Result of publishing an artifact."""

    ref: str | None
    attempts: int = 0
    error: str = ""
    superseded: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.ref is not None


def normalize_ref(value: str) -> str | None:
    """Return the canonical form of a positive integer ref, or None.

    >>> normalize_ref(" 42 ")
    '42'
    >>> normalize_ref("abc") is None
    True
    """
    text = value.strip()
    if not REF_PATTERN.fullmatch(text):
        return None
    number = int(text)
    return str(number) if number > 0 else None


def _newest(artifacts: list[StoredArtifact]) -> StoredArtifact | None:
    def sort_key(artifact: StoredArtifact) -> tuple[datetime, int]:
        created = artifact.created() or datetime.min.replace(tzinfo=UTC)
        return created, int(artifact.ref) if REF_PATTERN.fullmatch(artifact.ref) else 0

    return max(artifacts, key=sort_key, default=None)


class CheckpointStoreClient:
    """Resolve, fetch, publish and discard named artifacts.

    Args:
        store: Backend implementing the four store operations.
        run_id: Identifier of the current execution context; the first
            place ``resolve`` looks.
        retry: Retry policy wrapped around every store call.
        max_age_seconds: Upper bound on the age of a checkpoint taken from
            the historical scope. None disables the bound.
        clock: Returns "now"; injectable for tests.
        on_retry: Called as (description, attempt, error) before each retry.
    """

    def __init__(
        self,
        store: CheckpointStore,
        run_id: str = "",
        retry: RetryPolicy | None = None,
        max_age_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
        on_retry: RetryCallback | None = None,
    ) -> None:
        self.store = store
        self.run_id = run_id
        self.retry = retry or RetryPolicy()
        self.max_age_seconds = max_age_seconds
        self._clock = clock or (lambda: datetime.now(UTC))
        self._on_retry = on_retry

    def _call(self, operation: Callable[[], object], description: str, on_retry: RetryCallback | None = None):
        def _notify(attempt: int, error: Exception) -> None:
            for callback in (self._on_retry, on_retry):
                if callback is not None:
                    callback(description, attempt, error)

        return self.retry.call(operation, description, on_retry=_notify)

    def _list(self, name: str, run_id: str | None) -> list[StoredArtifact]:
        scope = "current run" if run_id is not None else "all runs"
        return self._call(lambda: self.store.list_by_name(name, run_id), f"list {name} ({scope})")

    def resolve(self, name: str, explicit_ref: str | None = None) -> Resolution:
        """Find the ref to resume from.

        A non-empty ``explicit_ref`` wins without touching the store; a
        malformed one is rejected rather than falling back to name lookup.
        Otherwise the newest live artifact in the current run is used, then
        the newest live and young-enough artifact from any run.
        """
        if explicit_ref is not None and explicit_ref.strip():
            ref = normalize_ref(explicit_ref)
            if ref is None:
                logger.warning("Ignoring malformed checkpoint ref %r", explicit_ref)
                return Resolution(ref=None, source=ResolveSource.REJECTED, error=f"malformed ref {explicit_ref!r}")
            return Resolution(ref=ref, source=ResolveSource.EXPLICIT)

        now = self._clock()
        try:
            if self.run_id:
                current = [a for a in self._list(name, self.run_id) if not a.is_expired(now)]
                newest = _newest(current)
                if newest is not None:
                    return Resolution(ref=newest.ref, source=ResolveSource.CURRENT)

            history = [a for a in self._list(name, None) if not a.is_expired(now) and self._young_enough(a, now)]
        except (RetryExhaustedError, StoreError) as e:
            logger.warning("Could not resolve %s: %s", name, e)
            return Resolution(ref=None, source=ResolveSource.UNAVAILABLE, error=str(e))

        newest = _newest(history)
        if newest is None:
            return Resolution(ref=None, source=ResolveSource.NOT_FOUND)
        return Resolution(ref=newest.ref, source=ResolveSource.HISTORY)

    def _young_enough(self, artifact: StoredArtifact, now: datetime) -> bool:
        if self.max_age_seconds is None:
            return True
        age = artifact.age_seconds(now)
        # Without a creation time the age cannot be checked, so never trust it.
        return age is not None and age <= self.max_age_seconds

    def fetch(self, ref: str, dest: Path, on_retry: RetryCallback | None = None) -> FetchResult:
        """Download artifact ``ref`` into ``dest``.

        ``on_retry`` is called before each retry, in addition to the
        client-wide callback.
        """
        try:
            files = self._call(lambda: self.store.fetch(ref, dest), f"fetch artifact {ref}", on_retry)
        except (RetryExhaustedError, StoreError) as e:
            logger.warning("Could not fetch artifact %s: %s", ref, e)
            return FetchResult(success=False, error=str(e))
        if not files:
            return FetchResult(success=False, error=f"artifact {ref} has no files")
        return FetchResult(success=True, files=list(files))

    def discard(self, name: str) -> list[str]:
        """Best-effort delete every live artifact called ``name``.

        Returns the refs that were deleted (or were already gone).
        """
        try:
            existing = self._list(name, None)
        except (RetryExhaustedError, StoreError) as e:
            logger.warning("Could not list %s for deletion: %s", name, e)
            return []

        deleted: list[str] = []
        for artifact in existing:
            try:
                self._call(lambda ref=artifact.ref: self.store.delete(ref), f"delete artifact {artifact.ref}")
            except ArtifactNotFoundError:
                pass
            except (RetryExhaustedError, StoreError) as e:
                logger.warning("Could not delete artifact %s (%s): %s", artifact.ref, name, e)
                continue
            deleted.append(artifact.ref)
        return deleted

    def publish(
        self,
        name: str,
        paths: list[Path],
        retention_days: int,
        on_retry: RetryCallback | None = None,
    ) -> PublishResult:
        """Replace whatever is stored under ``name`` with ``paths``.

        Prior artifacts are deleted first (best effort), then the upload is
        retried under the retry policy. Failure is reported, never raised.
        ``on_retry`` only sees upload retries.
        """
        superseded = self.discard(name)
        attempts = 0

        def _upload() -> str:
            nonlocal attempts
            attempts += 1
            return self.store.store(name, paths, retention_days, run_id=self.run_id)

        try:
            ref = self._call(_upload, f"upload {name}", on_retry)
        except (RetryExhaustedError, StoreError) as e:
            logger.warning("Could not publish %s: %s", name, e)
            return PublishResult(ref=None, attempts=attempts, error=str(e), superseded=superseded)
        return PublishResult(ref=ref, attempts=attempts, superseded=superseded)
