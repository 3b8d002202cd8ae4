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

"""Bounded retry with a fixed delay between attempts.

Retries block the caller: ``call`` returns the operation's result or raises
``RetryExhaustedError`` once every attempt has failed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from buildstage.core.exceptions import ArtifactNotFoundError, RetryExhaustedError, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 5
DEFAULT_DELAY_SECONDS = 10.0


@dataclass
class RetryPolicy:
    """Fixed-delay retry policy.

    Attributes:
        attempts: Maximum number of attempts, including the first one.
        delay: Seconds to wait between attempts.
        retry_on: Exception types that count as a failed attempt.
        give_up_on: Exception types re-raised immediately, even when they
            also match ``retry_on``.
        sleep: Sleep function; tests pass a no-op.
    """

    attempts: int = DEFAULT_ATTEMPTS
    delay: float = DEFAULT_DELAY_SECONDS
    retry_on: tuple[type[Exception], ...] = (StoreError, OSError)
    give_up_on: tuple[type[Exception], ...] = (ArtifactNotFoundError,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {self.attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must not be negative, got {self.delay}")

    def call(
        self,
        operation: Callable[[], T],
        description: str = "operation",
        on_retry: Callable[[int, Exception], None] | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds or the attempts run out.

        Args:
            operation: Zero-argument callable to run.
            description: Short label used in log messages.
            on_retry: Called with (failed attempt number, error) before each
                wait, e.g. to log a run event.

        Raises:
            RetryExhaustedError: Every attempt failed.
        """
        last_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                return operation()
            except self.give_up_on:
                raise
            except self.retry_on as e:
                last_error = e
                logger.warning("%s failed (attempt %d/%d): %s", description, attempt, self.attempts, e)
                if attempt == self.attempts:
                    break
                if on_retry is not None:
                    on_retry(attempt, e)
                self.sleep(self.delay)

        raise RetryExhaustedError(
            message=f"{description} failed after {self.attempts} attempts: {last_error}",
            attempts=self.attempts,
            last_error=str(last_error),
        ) from last_error
