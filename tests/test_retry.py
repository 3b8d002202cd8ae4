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


"""Tests for buildstage.retry module."""

from __future__ import annotations

import pytest

from buildstage.core.exceptions import ArtifactNotFoundError, RetryExhaustedError, StoreError
from buildstage.retry import RetryPolicy


class Flaky:
    """Callable failing a fixed number of times before returning a value."""

    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.error = error or StoreError(message="service unavailable", status_code=503)
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def policy(sleeps: list[float]) -> RetryPolicy:
    return RetryPolicy(attempts=5, delay=10.0, sleep=sleeps.append)


class TestRetryPolicy:
    """Tests for RetryPolicy.call."""

    def test_first_attempt_success_does_not_sleep(self, policy: RetryPolicy, sleeps: list[float]) -> None:
        op = Flaky(0)
        assert policy.call(op) == "ok"
        assert op.calls == 1
        assert sleeps == []

    @pytest.mark.parametrize("failures", [1, 2, 3, 4])
    def test_succeeds_after_k_failures(self, policy: RetryPolicy, sleeps: list[float], failures: int) -> None:
        op = Flaky(failures)
        assert policy.call(op, "upload") == "ok"
        assert op.calls == failures + 1
        assert sleeps == [10.0] * failures

    def test_exhausts_after_max_attempts(self, policy: RetryPolicy, sleeps: list[float]) -> None:
        op = Flaky(5)
        with pytest.raises(RetryExhaustedError) as exc_info:
            policy.call(op, "upload")

        assert op.calls == 5
        # No wait after the last attempt
        assert sleeps == [10.0] * 4
        assert exc_info.value.attempts == 5
        assert "service unavailable" in exc_info.value.last_error
        assert isinstance(exc_info.value.__cause__, StoreError)

    def test_not_found_is_not_retried(self, policy: RetryPolicy) -> None:
        op = Flaky(5, ArtifactNotFoundError(message="gone", status_code=404))
        with pytest.raises(ArtifactNotFoundError):
            policy.call(op)
        assert op.calls == 1

    def test_unrelated_errors_propagate(self, policy: RetryPolicy) -> None:
        op = Flaky(1, KeyError("bug"))
        with pytest.raises(KeyError):
            policy.call(op)
        assert op.calls == 1

    def test_oserror_is_retried(self, policy: RetryPolicy) -> None:
        op = Flaky(2, ConnectionResetError("reset"))
        assert policy.call(op) == "ok"

    def test_on_retry_called_before_each_wait(self, policy: RetryPolicy) -> None:
        seen: list[int] = []
        with pytest.raises(RetryExhaustedError):
            policy.call(Flaky(5), on_retry=lambda attempt, error: seen.append(attempt))
        assert seen == [1, 2, 3, 4]

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(attempts=0)

    def test_rejects_negative_delay(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(delay=-1)
