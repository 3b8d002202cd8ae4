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


"""Tests for buildstage.variants module."""

from __future__ import annotations

import itertools

import pytest

from buildstage.variants import ARCH_STRATEGIES, DEFAULT_SIMD, Arch, Variant


class TestVariantCreate:
    """Tests for Variant.create normalization."""

    def test_default_arch_gets_default_simd(self) -> None:
        variant = Variant.create()
        assert variant.arch == Arch.DEFAULT
        assert variant.simd == DEFAULT_SIMD

    def test_simd_is_lowercased_and_stripped(self) -> None:
        assert Variant.create("default", " SSE3 ").simd == "sse3"

    def test_empty_simd_falls_back_to_default(self) -> None:
        assert Variant.create("default", "").simd == DEFAULT_SIMD

    @pytest.mark.parametrize("arch", ["x86", "arm", "X86", " arm "])
    def test_non_x64_drops_simd(self, arch: str) -> None:
        assert Variant.create(arch, "sse3").simd is None

    def test_accepts_enum(self) -> None:
        assert Variant.create(Arch.ARM).arch == Arch.ARM

    def test_unknown_arch_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown architecture"):
            Variant.create("mips")

    @pytest.mark.parametrize("simd", ["sse-3", "avx 2", "-avx", "avx/2"])
    def test_invalid_simd_raises(self, simd: str) -> None:
        with pytest.raises(ValueError, match="Invalid SIMD level"):
            Variant.create("default", simd)


class TestVariantNaming:
    """Tests for checkpoint and package names."""

    @pytest.mark.parametrize(
        ("arch", "simd", "checkpoint", "package"),
        [
            ("x86", None, "build-checkpoint-x86", "chromium-x86"),
            ("arm", None, "build-checkpoint-arm64", "chromium-arm64"),
            ("default", "sse3", "build-checkpoint-x64-sse3", "chromium-x64-sse3"),
            ("default", None, "build-checkpoint-x64-avx2", "chromium-x64-avx2"),
        ],
    )
    def test_names(self, arch: str, simd: str | None, checkpoint: str, package: str) -> None:
        variant = Variant.create(arch, simd)
        assert variant.checkpoint_name == checkpoint
        assert variant.package_name == package

    def test_names_are_deterministic(self) -> None:
        assert Variant.create("default", "sse3").checkpoint_name == Variant.create("default", "SSE3").checkpoint_name

    def test_distinct_variants_never_share_names(self) -> None:
        variants = {
            Variant.create(arch, simd)
            for arch, simd in itertools.product(ARCH_STRATEGIES, ["sse3", "avx2", "avx512", "sse4.1", "neon"])
        }
        checkpoint_names = {v.checkpoint_name for v in variants}
        package_names = {v.package_name for v in variants}
        assert len(checkpoint_names) == len(variants)
        assert len(package_names) == len(variants)
        assert not checkpoint_names & package_names

    def test_str_is_slug(self) -> None:
        assert str(Variant.create("arm")) == "arm64"


class TestBuildFlags:
    """Tests for Variant.build_flags."""

    def test_x86_flags(self) -> None:
        assert Variant.create("x86").build_flags() == ["--x86"]

    def test_arm_flags(self) -> None:
        assert Variant.create("arm").build_flags() == ["--arm"]

    def test_x64_flags_carry_simd(self) -> None:
        assert Variant.create("default", "sse3").build_flags() == ["--simd", "sse3"]

    def test_to_dict(self) -> None:
        data = Variant.create("default", "sse3").to_dict()
        assert data == {
            "arch": "default",
            "simd": "sse3",
            "checkpoint_name": "build-checkpoint-x64-sse3",
            "package_name": "chromium-x64-sse3",
        }
