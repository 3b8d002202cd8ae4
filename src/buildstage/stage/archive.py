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

"""Pack and unpack build working trees as checkpoint payloads.

Checkpoints are disposable, so packing favours speed over size: gzip at the
lowest compression level. Member mtimes are stored and restored on
extraction, which keeps the build tool's incremental state valid after a
resume.
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import shutil
import tarfile
from dataclasses import dataclass
from pathlib import Path

from buildstage.core.exceptions import ArchiveError

logger = logging.getLogger(__name__)

PAYLOAD_NAME = "checkpoint.tar.gz"
COMPRESS_LEVEL = 1


@dataclass
class PackResult:
    """Result of packing a directory tree."""

    path: Path
    sha256: str
    size: int
    member_count: int


def compute_sha256(path: Path) -> str:
    """Compute the SHA-256 hash of a file."""
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def pack(source_dir: Path, output_dir: Path, name: str = PAYLOAD_NAME) -> PackResult:
    """Pack ``source_dir`` into a single gzip tarball inside ``output_dir``.

    Members are stored relative to ``source_dir``. The tarball is written to
    a temporary name and renamed once complete, so a crash never leaves a
    truncated payload under the final name.

    Raises:
        ArchiveError: ``source_dir`` is missing, the tree cannot be read or
            the payload cannot be written.
    """
    if not source_dir.is_dir():
        raise ArchiveError(message=f"Cannot pack missing directory: {source_dir}")

    dest = output_dir / name
    partial = output_dir / f".{name}.partial"

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        with tarfile.open(partial, "w:gz", compresslevel=COMPRESS_LEVEL) as tar:
            for child in sorted(source_dir.iterdir()):
                tar.add(child, arcname=child.name)
            member_count = len(tar.getmembers())
        partial.replace(dest)
        result = PackResult(
            path=dest,
            sha256=compute_sha256(dest),
            size=dest.stat().st_size,
            member_count=member_count,
        )
    except (OSError, tarfile.TarError) as e:
        with contextlib.suppress(OSError):
            partial.unlink(missing_ok=True)
        raise ArchiveError(message=f"Failed to pack {source_dir}: {e}") from e

    logger.debug("Packed %s into %s (%d members, %d bytes)", source_dir, dest, member_count, result.size)
    return result


def _replace_tree(staging: Path, target: Path) -> None:
    if target.is_symlink() or target.is_file():
        target.unlink()
    elif target.exists():
        shutil.rmtree(target)
    staging.replace(target)


def unpack(payload: Path, dest_dir: Path) -> int:
    """Replace ``dest_dir`` with the contents of ``payload``.

    Extraction goes to a sibling staging directory first; ``dest_dir`` is
    only replaced once the whole archive extracted cleanly, so a corrupt
    payload leaves the existing tree untouched. When ``dest_dir`` is a
    symlink, the directory it points to is replaced and the link is kept.

    Returns:
        Number of archive members extracted.

    Raises:
        ArchiveError: The payload is missing, corrupt or unsafe, or the
            working tree could not be replaced.
    """
    if not payload.is_file():
        raise ArchiveError(message=f"Checkpoint payload not found: {payload}")

    target = dest_dir.resolve() if dest_dir.is_symlink() else dest_dir
    staging = target.with_name(f".{target.name}.unpack")

    try:
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)
        with tarfile.open(payload, "r:*") as tar:
            members = tar.getmembers()
            tar.extractall(path=staging, filter="data")
        _replace_tree(staging, target)
    except (OSError, EOFError, tarfile.TarError) as e:
        shutil.rmtree(staging, ignore_errors=True)
        raise ArchiveError(message=f"Failed to unpack {payload.name} into {dest_dir}: {e}") from e

    logger.debug("Unpacked %s into %s (%d members)", payload, target, len(members))
    return len(members)


def find_payload(download_dir: Path, name: str = PAYLOAD_NAME) -> Path | None:
    """Locate the checkpoint payload among fetched files."""
    direct = download_dir / name
    if direct.is_file():
        return direct
    matches = sorted(p for p in download_dir.rglob(name) if p.is_file())
    return matches[0] if matches else None
