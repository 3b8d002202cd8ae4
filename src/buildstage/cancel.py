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

"""Cancellation token for staging rounds.

The controller checks the token between steps and the build runner polls it
while the build process runs. Only the CLI installs signal handlers, and
those handlers do nothing but trip the token.
"""

from __future__ import annotations

import contextlib
import signal
import threading
from collections.abc import Iterator

from buildstage.core.exceptions import BuildInterruptedError


class CancellationToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise BuildInterruptedError(message=f"Round interrupted: {self._reason}")


@contextlib.contextmanager
def cancel_on_signals(
    token: CancellationToken,
    signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancellationToken]:
    """Route the given signals to ``token`` for the duration of the block.

    Previous handlers are restored on exit. Off the main thread no handlers
    can be installed; the token then only trips when cancelled directly.
    """
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    previous = {}

    def _handler(signum: int, frame: object) -> None:
        token.cancel(f"received {signal.Signals(signum).name}")

    for sig in signals:
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
