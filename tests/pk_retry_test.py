# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for publishkit.retry."""

from __future__ import annotations

import pytest
from publishkit.errors import E
from publishkit.logging import configure_logging
from publishkit.retry import (
    RetriesExhaustedError,
    RetryPolicy,
    TransientInvocationError,
    run_with_retry,
)
from tests._fakes import RecordingSleep

configure_logging(quiet=True)


class _Flaky:
    """Fails transiently ``failures`` times, then returns ``'ok'``."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise TransientInvocationError(f'ECONNRESET #{self.calls}')
        return 'ok'


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_linear_backoff(self) -> None:
        """The wait grows with the attempt number."""
        policy = RetryPolicy(max_attempts=3, delay=30.0)
        assert [policy.backoff(n) for n in (1, 2)] == [30.0, 60.0]

    def test_rejects_zero_attempts(self) -> None:
        """At least one attempt is required."""
        with pytest.raises(ValueError, match='max_attempts'):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_delay(self) -> None:
        """Negative delays are invalid."""
        with pytest.raises(ValueError, match='delay'):
            RetryPolicy(delay=-1)


class TestRunWithRetry:
    """Tests for run_with_retry."""

    @pytest.mark.asyncio()
    async def test_first_try(self) -> None:
        """No failure, one attempt, no sleep."""
        sleep = RecordingSleep()
        op = _Flaky(0)
        value, attempts = await run_with_retry(op, policy=RetryPolicy(), sleep=sleep)
        assert (value, attempts) == ('ok', 1)
        assert sleep.delays == []

    @pytest.mark.asyncio()
    async def test_recovers(self) -> None:
        """A transient failure followed by success."""
        sleep = RecordingSleep()
        op = _Flaky(1)
        value, attempts = await run_with_retry(op, policy=RetryPolicy(max_attempts=2, delay=5), sleep=sleep)
        assert (value, attempts) == ('ok', 2)
        assert sleep.delays == [5]

    @pytest.mark.asyncio()
    async def test_exhausted(self) -> None:
        """Every attempt transient gives RetriesExhaustedError."""
        sleep = RecordingSleep()
        op = _Flaky(10)
        with pytest.raises(RetriesExhaustedError) as exc_info:
            await run_with_retry(op, policy=RetryPolicy(max_attempts=3, delay=1), sleep=sleep)
        assert op.calls == 3
        assert sleep.delays == [1, 2]
        assert exc_info.value.attempts == 3
        assert exc_info.value.code == E.PUBLISH_RETRIES_EXHAUSTED
        assert 'ECONNRESET #3' in exc_info.value.message

    @pytest.mark.asyncio()
    async def test_other_errors_propagate(self) -> None:
        """Non-transient errors are not retried."""
        calls = 0

        async def op() -> str:
            nonlocal calls
            calls += 1
            raise FileNotFoundError('npm')

        with pytest.raises(FileNotFoundError):
            await run_with_retry(op, policy=RetryPolicy(max_attempts=5), sleep=RecordingSleep())
        assert calls == 1
