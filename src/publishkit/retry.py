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

"""Bounded retry for transient publish failures.

Retry flow::

    op() ──▶ returns value ──────────────────────────▶ (value, attempts)
      │
      ├── raises TransientInvocationError
      │     ├── attempt < max_attempts ──▶ sleep(delay * attempt) ──▶ op()
      │     └── out of attempts ──▶ RetriesExhaustedError
      │
      └── raises anything else ──▶ propagates immediately

Only :class:`TransientInvocationError` is retried. A registry rejecting
a publish (auth, conflict, validation) is a business answer and is not
retried. Sleep is injected so tests never wait.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from publishkit.backends._run import CommandResult
from publishkit.errors import E, PublishKitError
from publishkit.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

Sleep = Callable[[float], Awaitable[None]]


class TransientInvocationError(Exception):
    """A publish invocation failed for a reason worth retrying.

    Args:
        reason: What went wrong (network error text, timeout).
        result: The command result, when the command ran to completion.
    """

    def __init__(self, reason: str, result: CommandResult | None = None) -> None:
        """Initialize with a reason and the optional command result."""
        self.reason = reason
        self.result = result
        super().__init__(reason)


class RetriesExhaustedError(PublishKitError):
    """Every attempt failed with a transient error."""

    def __init__(self, last: TransientInvocationError, attempts: int) -> None:
        """Initialize from the last transient failure."""
        self.last = last
        self.attempts = attempts
        super().__init__(
            code=E.PUBLISH_RETRIES_EXHAUSTED,
            message=f'Gave up after {attempts} attempt(s): {last.reason}',
            hint='Re-run the publish; already published targets are skipped.',
        )


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait.

    Attributes:
        max_attempts: Total invocations, including the first.
        delay: Base delay in seconds. The wait before attempt ``n + 1``
            is ``delay * n``.
    """

    max_attempts: int = 2
    delay: float = 30.0

    def __post_init__(self) -> None:
        """Reject a policy that can never run the operation."""
        if self.max_attempts < 1:
            raise ValueError(f'max_attempts must be >= 1, got {self.max_attempts}')
        if self.delay < 0:
            raise ValueError(f'delay must be >= 0, got {self.delay}')

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after failed attempt ``attempt`` (1-based)."""
        return self.delay * attempt


async def run_with_retry(
    op: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
    label: str = '',
) -> tuple[T, int]:
    """Run ``op`` until it returns or stops raising transient errors.

    Args:
        op: Zero-argument coroutine factory; called once per attempt.
        policy: Attempt bound and backoff.
        sleep: Awaitable sleep, injected by tests.
        label: Name used in log events.

    Returns:
        ``(value, attempts)``.

    Raises:
        RetriesExhaustedError: When the last attempt was transient.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            value = await op()
        except TransientInvocationError as exc:
            if attempt >= policy.max_attempts:
                logger.error('retries_exhausted', op=label, attempts=attempt, reason=exc.reason)
                raise RetriesExhaustedError(exc, attempt) from exc
            delay = policy.backoff(attempt)
            logger.warning(
                'transient_failure_retry',
                op=label,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay=delay,
                reason=exc.reason,
            )
            await sleep(delay)
            continue
        if attempt > 1:
            logger.warning('recovered_after_retry', op=label, attempts=attempt)
        return value, attempt


__all__ = [
    'RetriesExhaustedError',
    'RetryPolicy',
    'Sleep',
    'TransientInvocationError',
    'run_with_retry',
]
