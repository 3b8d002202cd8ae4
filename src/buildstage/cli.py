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


"""CLI application definition for Buildstage."""

from __future__ import annotations

from typer import Typer

from buildstage.commands.init import init
from buildstage.commands.names import names
from buildstage.commands.stage import stage

app: Typer = Typer(
    name="buildstage",
    help="A tool for staging long builds across time-boxed runs.",
    add_completion=False,
)

# Register commands
app.command(name="init")(init)
app.command(name="stage")(stage)
app.command(name="names")(names)
