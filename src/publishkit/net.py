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

"""HTTP utilities for publishkit.

Provides a managed :class:`httpx.AsyncClient` and a small retry helper
for registry metadata reads and reachability pings. Mutating registry
calls never go through here; publishing is always done by the
registry's own CLI.

Usage::

    from publishkit.net import http_client, request_with_retry

    async with http_client(token=token) as client:
        response = await request_with_retry(client, 'GET', url)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Final

import httpx

from publishkit.logging import get_logger

log = get_logger('publishkit.net')

DEFAULT_POOL_SIZE: Final[int] = 10
DEFAULT_TIMEOUT: Final[float] = 30.0

MAX_RETRIES: Final[int] = 2
RETRY_BACKOFF_BASE: Final[float] = 1.0

# Rate limiting and gateway errors; 4xx answers are final.
RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})

Sleep = Callable[[float], Awaitable[None]]


@asynccontextmanager
async def http_client(
    *,
    pool_size: int = DEFAULT_POOL_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
    token: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncGenerator[httpx.AsyncClient]:
    """Create a managed async HTTP client.

    Args:
        pool_size: Maximum number of connections in the pool.
        timeout: Request timeout in seconds.
        token: Optional registry token, sent as a bearer credential.
        transport: Optional transport override (tests pass
            :class:`httpx.MockTransport`).

    Yields:
        An :class:`httpx.AsyncClient` instance.
    """
    headers = {'Accept': 'application/json'}
    if token:
        headers['Authorization'] = f'Bearer {token}'
    limits = httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size)
    async with httpx.AsyncClient(
        limits=limits,
        timeout=httpx.Timeout(timeout),
        headers=headers,
        follow_redirects=True,
        transport=transport,
    ) as client:
        yield client


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = MAX_RETRIES,
    backoff_base: float = RETRY_BACKOFF_BASE,
    sleep: Sleep = asyncio.sleep,
) -> httpx.Response:
    """Make an HTTP request, retrying rate limits and transport errors.

    Backoff doubles per attempt. The final response is returned as-is
    even when its status is retryable; callers decide what a 5xx means.

    Args:
        client: The httpx async client to use.
        method: HTTP method.
        url: Request URL.
        max_retries: Retries after the first attempt.
        backoff_base: Base delay in seconds.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        The last :class:`httpx.Response` received.

    Raises:
        httpx.TransportError: If every attempt failed at the transport
            level (DNS, connection reset, timeout).
    """
    for attempt in range(max_retries + 1):
        last_attempt = attempt == max_retries
        delay = backoff_base * (2**attempt)
        try:
            response = await client.request(method, url)
        except httpx.TransportError as exc:
            log.warning('http_retry_error', url=url, error=str(exc), attempt=attempt + 1)
            if last_attempt:
                raise
            await sleep(delay)
            continue

        if response.status_code not in RETRYABLE_STATUS_CODES or last_attempt:
            return response

        log.warning('http_retry', url=url, status=response.status_code, attempt=attempt + 1, delay=delay)
        await sleep(delay)

    msg = 'request_with_retry: no attempts were made'
    raise RuntimeError(msg)


__all__ = [
    'DEFAULT_POOL_SIZE',
    'DEFAULT_TIMEOUT',
    'MAX_RETRIES',
    'RETRYABLE_STATUS_CODES',
    'Sleep',
    'http_client',
    'request_with_retry',
]
