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

"""TTY-aware spinner for long store and archive operations.

Uses a Rich spinner when the real stdout is a TTY and plain lines otherwise
(CI logs). Output goes to sys.__stdout__ so it never lands in run logs.
"""

from __future__ import annotations

import contextlib
import sys
from collections.abc import Callable, Iterator

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner


def is_tty() -> bool:
    """Return True if the real stdout is a TTY."""
    try:
        if sys.__stdout__ is None:
            return False  # pragma: no cover
        return sys.__stdout__.isatty()
    except (AttributeError, ValueError):  # pragma: no cover
        return False


def _print_line(text: str) -> None:
    with contextlib.suppress(Exception):  # pragma: no cover
        print(text, file=sys.__stdout__, flush=True)


@contextlib.contextmanager
def activity_spinner(
    phase: str, description: str, disable: bool = False
) -> Iterator[Callable[[str], None]]:
    """Show a spinner while the wrapped block runs.

    Yields a callable that replaces the description, e.g. to show the retry
    attempt in progress. Off a TTY every update is printed as its own line.
    """
    text = f"[{phase}] {description}"

    if disable or not is_tty():
        _print_line(text)

        def _update_plain(new_description: str) -> None:
            _print_line(f"[{phase}] {new_description}")

        yield _update_plain
        return

    console = Console(file=sys.__stdout__, force_terminal=True)
    spinner = Spinner("dots", text=text)
    current = [text]

    def _update_live(new_description: str) -> None:
        current[0] = f"[{phase}] {new_description}"
        spinner.update(text=current[0])

    with Live(spinner, console=console, refresh_per_second=12, transient=True):
        yield _update_live

    _print_line(current[0])
