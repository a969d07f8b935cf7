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

"""npm-compatible registry client for publishkit.

The :class:`NpmRegistry` implements the :class:`RegistryClient`
protocol against any registry that speaks the npm registry API (public
npm, GitHub Packages, Verdaccio, Artifactory, ...).

API endpoints used:

- ``GET /{package}``: Full package metadata ("packument"). Returns
  ``dist-tags`` and ``versions``, where each version carries
  ``dist.shasum`` (SHA-1) and ``dist.integrity`` (SHA-512 SRI).
  See: https://github.com/npm/registry/blob/main/docs/REGISTRY-API.md
- ``GET /-/ping``: Health check.

The packument is used instead of ``GET /{package}/{version}`` because
GitHub Packages does not serve the per-version document.

Scoped packages (e.g. ``@scope/core``) must be URL-encoded as
``@scope%2Fcore`` in the URL path.

Answers are interpreted strictly. A 404 means "not published". A 401 or
403 raises, so that a missing credential can never be mistaken for an
unpublished version.
"""

from __future__ import annotations

import asyncio
import urllib.parse
from typing import Any

import httpx

from publishkit.backends.registry._types import VersionMetadata
from publishkit.errors import E, PublishKitError
from publishkit.logging import get_logger
from publishkit.net import DEFAULT_POOL_SIZE, DEFAULT_TIMEOUT, Sleep, http_client, request_with_retry

log = get_logger('publishkit.backends.registry.npm')


def _encode_package_name(name: str) -> str:
    """URL-encode a package name for the registry API.

    ``@scope/core`` becomes ``@scope%2Fcore``; unscoped names are
    returned as-is.
    """
    if name.startswith('@'):
        return urllib.parse.quote(name, safe='@')
    return name


class NpmRegistry:
    """Registry client for one npm-compatible registry.

    Args:
        base_url: Registry URL, e.g. ``https://npm.pkg.github.com/``.
        token: Optional bearer token for private registries.
        pool_size: HTTP connection pool size.
        timeout: HTTP request timeout in seconds.
        transport: Optional httpx transport override.
        sleep: Backoff sleep between retried reads.
    """

    DEFAULT_BASE_URL: str = 'https://registry.npmjs.org'

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize with the registry base URL."""
        self._base_url = base_url.rstrip('/')
        self._token = token
        self._pool_size = pool_size
        self._timeout = timeout
        self._transport = transport
        self._sleep = sleep

    @property
    def base_url(self) -> str:
        """The registry URL without a trailing slash."""
        return self._base_url

    async def version_metadata(self, package_name: str, version: str) -> VersionMetadata | None:
        """Fetch the registry's record for ``package_name@version``.

        Returns:
            The version's metadata, or ``None`` when the package or the
            version is not on the registry.

        Raises:
            PublishKitError: ``PK-AUTH-REJECTED`` on 401/403, and
                ``PK-PREVALIDATION-REGISTRY-ERROR`` on transport errors,
                other error statuses, or an unparseable body.
        """
        url = f'{self._base_url}/{_encode_package_name(package_name)}'
        try:
            async with http_client(
                pool_size=self._pool_size,
                timeout=self._timeout,
                token=self._token,
                transport=self._transport,
            ) as client:
                response = await request_with_retry(client, 'GET', url, sleep=self._sleep)
        except httpx.HTTPError as exc:
            raise PublishKitError(
                code=E.PREVALIDATION_REGISTRY_ERROR,
                message=f'Could not reach {self._base_url}: {exc}',
                hint='Check network access to the registry.',
            ) from exc

        status = response.status_code
        if status == 404:
            log.debug('package_not_found', package=package_name, registry=self._base_url)
            return None
        if status in {401, 403}:
            raise PublishKitError(
                code=E.AUTH_REJECTED,
                message=f'{self._base_url} rejected the metadata request for {package_name} (HTTP {status})',
                hint='Check that the registry token is set and has read access to this package.',
            )
        if status != 200:
            raise PublishKitError(
                code=E.PREVALIDATION_REGISTRY_ERROR,
                message=f'{self._base_url} answered HTTP {status} for {package_name}',
            )

        try:
            data: dict[str, Any] = response.json()  # noqa: ANN401 - JSON payload
        except ValueError as exc:
            raise PublishKitError(
                code=E.PREVALIDATION_REGISTRY_ERROR,
                message=f'{self._base_url} returned invalid JSON for {package_name}',
            ) from exc

        versions = data.get('versions') or {}
        entry = versions.get(version) if isinstance(versions, dict) else None
        if not isinstance(entry, dict):
            log.debug('version_not_found', package=package_name, version=version, registry=self._base_url)
            return None

        dist = entry.get('dist') or {}
        dist_tags = data.get('dist-tags') or {}
        return VersionMetadata(
            name=str(entry.get('name') or data.get('name') or package_name),
            version=version,
            shasum=dist.get('shasum') or None,
            integrity=dist.get('integrity') or None,
            dist_tags={str(k): str(v) for k, v in dist_tags.items()},
        )

    async def ping(self) -> str | None:
        """Check that the registry answers ``/-/ping``.

        Returns:
            ``None`` when reachable, otherwise a short error description.
        """
        url = f'{self._base_url}/-/ping'
        try:
            async with http_client(
                pool_size=self._pool_size,
                timeout=self._timeout,
                token=self._token,
                transport=self._transport,
            ) as client:
                response = await request_with_retry(client, 'GET', url, max_retries=0)
        except httpx.TimeoutException:
            return f'Connection timed out after {self._timeout:g}s'
        except httpx.ConnectError as exc:
            return f'Connection failed: {exc}'
        except httpx.HTTPError as exc:
            return str(exc) or type(exc).__name__

        # An auth challenge or a missing ping route still proves the host is up.
        if response.status_code < 500:
            return None
        if response.status_code == 503:
            return 'Service unavailable (503)'
        return f'Ping returned HTTP {response.status_code}'


__all__ = [
    'NpmRegistry',
]
