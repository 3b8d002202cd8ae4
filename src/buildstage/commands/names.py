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

"""Implementation of `buildstage names` command."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

from buildstage.variants import ARCH_STRATEGIES, Variant


def names(
    arch: str = typer.Option("", help="Architecture: x86, arm or default; all when omitted"),
    simd: str = typer.Option("", help="SIMD level for x64 builds"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Show checkpoint and package names for build variants."""
    try:
        if arch:
            variants = [Variant.create(arch, simd or None)]
        else:
            variants = [Variant.create(a, simd or None) for a in ARCH_STRATEGIES]
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if as_json:
        typer.echo(json.dumps([v.to_dict() for v in variants], indent=2))
        return

    table = Table(title="Build variants")
    table.add_column("Variant")
    table.add_column("Build flags")
    table.add_column("Checkpoint")
    table.add_column("Package")
    for variant in variants:
        table.add_row(variant.slug, " ".join(variant.build_flags()), variant.checkpoint_name, variant.package_name)
    Console().print(table)
