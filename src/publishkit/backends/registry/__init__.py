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

"""Registry client protocol for publishkit.

The :class:`RegistryClient` protocol is the read-only view of an
npm-compatible registry used by pre-validation and by the auth setup's
reachability check. Implementations:

- :class:`~publishkit.backends.registry.npm.NpmRegistry`: httpx client
  for the npm registry API.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from publishkit.backends.registry._types import VersionMetadata as VersionMetadata
from publishkit.backends.registry.npm import NpmRegistry as NpmRegistry

__all__ = [
    'NpmRegistry',
    'RegistryClient',
    'VersionMetadata',
]


@runtime_checkable
class RegistryClient(Protocol):
    """Protocol for reading publish state from one registry."""

    async def version_metadata(self, package_name: str, version: str) -> VersionMetadata | None:
        """Return metadata for a published version, or ``None`` if absent.

        Raises:
            PublishKitError: When the registry cannot answer (auth,
                network, malformed response).
        """
        ...

    async def ping(self) -> str | None:
        """Return ``None`` if reachable, otherwise an error description."""
        ...
