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

"""Build variants: architecture and SIMD level selection.

A variant decides three things: the build flags passed to the build tool,
the checkpoint name and the final package name. All three come from one
strategy table so adding an architecture is a single entry.

Naming is injective: the slug is ``x86``, ``arm64`` or ``x64-<simd>`` and
SIMD levels may not contain ``-``, so two distinct variants never share a
checkpoint or package name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_SIMD = "avx2"
SIMD_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_.]*$")

CHECKPOINT_PREFIX = "build-checkpoint"
PACKAGE_PREFIX = "chromium"


class Arch(str, Enum):
    """Architecture selector accepted on the command line."""

    X86 = "x86"
    ARM = "arm"
    DEFAULT = "default"


@dataclass(frozen=True)
class ArchStrategy:
    """Per-architecture naming token and build flags."""

    token: str
    flags: tuple[str, ...] = ()
    supports_simd: bool = False


ARCH_STRATEGIES: dict[Arch, ArchStrategy] = {
    Arch.X86: ArchStrategy(token="x86", flags=("--x86",)),
    Arch.ARM: ArchStrategy(token="arm64", flags=("--arm",)),
    Arch.DEFAULT: ArchStrategy(token="x64", supports_simd=True),
}


@dataclass(frozen=True)
class Variant:
    """A normalized build variant.

    Use ``Variant.create`` rather than the constructor so the SIMD level is
    defaulted and validated; architectures without SIMD selection always
    carry ``simd=None``.
    """

    arch: Arch = Arch.DEFAULT
    simd: str | None = DEFAULT_SIMD

    @classmethod
    def create(cls, arch: Arch | str = Arch.DEFAULT, simd: str | None = None) -> Variant:
        """Build a normalized variant.

        Raises:
            ValueError: If the architecture or SIMD level is not recognized.
        """
        try:
            arch_value = arch if isinstance(arch, Arch) else Arch(str(arch).strip().lower())
        except ValueError:
            choices = ", ".join(a.value for a in Arch)
            raise ValueError(f"Unknown architecture '{arch}'. Expected one of: {choices}") from None

        strategy = ARCH_STRATEGIES[arch_value]
        if not strategy.supports_simd:
            return cls(arch=arch_value, simd=None)

        level = (simd or "").strip().lower() or DEFAULT_SIMD
        if not SIMD_PATTERN.match(level):
            raise ValueError(f"Invalid SIMD level '{simd}'. Use letters, digits, '.' or '_'.")
        return cls(arch=arch_value, simd=level)

    @property
    def strategy(self) -> ArchStrategy:
        return ARCH_STRATEGIES[self.arch]

    @property
    def slug(self) -> str:
        """Short, unique label such as ``x64-sse3``."""
        if self.simd:
            return f"{self.strategy.token}-{self.simd}"
        return self.strategy.token

    @property
    def checkpoint_name(self) -> str:
        return f"{CHECKPOINT_PREFIX}-{self.slug}"

    @property
    def package_name(self) -> str:
        return f"{PACKAGE_PREFIX}-{self.slug}"

    def build_flags(self) -> list[str]:
        """Variant-specific flags for the build tool."""
        flags = list(self.strategy.flags)
        if self.simd:
            flags.extend(["--simd", self.simd])
        return flags

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/summary."""
        return {
            "arch": self.arch.value,
            "simd": self.simd,
            "checkpoint_name": self.checkpoint_name,
            "package_name": self.package_name,
        }

    def __str__(self) -> str:
        return self.slug
