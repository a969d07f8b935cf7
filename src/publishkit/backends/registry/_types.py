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

"""Shared types for the registry subpackage."""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = [
    'VersionMetadata',
]


@dataclass(frozen=True)
class VersionMetadata:
    """What a registry reports about one published version.

    Attributes:
        name: Package name as stored by the registry.
        version: The published version.
        shasum: ``dist.shasum`` (hex SHA-1 of the tarball), if reported.
        integrity: ``dist.integrity`` (SRI string, usually
            ``sha512-<base64>``), if reported.
        dist_tags: The package's current dist-tags.
    """

    name: str
    version: str
    shasum: str | None = None
    integrity: str | None = None
    dist_tags: dict[str, str] = field(default_factory=dict)
