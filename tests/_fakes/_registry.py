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

"""Fake registry client for tests."""

from __future__ import annotations

import hashlib
from collections.abc import Mapping

from publishkit.backends.registry import VersionMetadata


def shasum(content: bytes) -> str:
    """Hex SHA-1, the way npm reports ``dist.shasum``."""
    return hashlib.sha1(content).hexdigest()  # noqa: S324 - npm's own fingerprint


class FakeRegistry:
    """Registry client test double.

    Args:
        published: ``(name, version)`` to the bytes that were published.
            The fake reports their SHA-1 as ``dist.shasum``.
        metadata: Explicit metadata, overriding ``published``.
        error: Raised by every ``version_metadata`` call.
        ping_error: Returned by ``ping``.
    """

    def __init__(
        self,
        *,
        published: Mapping[tuple[str, str], bytes] | None = None,
        metadata: Mapping[tuple[str, str], VersionMetadata] | None = None,
        error: Exception | None = None,
        ping_error: str | None = None,
    ) -> None:
        """Initialize with registry contents."""
        self._metadata = {
            key: VersionMetadata(name=key[0], version=key[1], shasum=shasum(content))
            for key, content in (published or {}).items()
        }
        self._metadata.update(metadata or {})
        self._error = error
        self._ping_error = ping_error
        self.lookups: list[tuple[str, str]] = []

    async def version_metadata(self, package_name: str, version: str) -> VersionMetadata | None:
        """Return the configured metadata, or ``None``."""
        self.lookups.append((package_name, version))
        if self._error is not None:
            raise self._error
        return self._metadata.get((package_name, version))

    async def ping(self) -> str | None:
        """Return the configured ping error."""
        return self._ping_error
