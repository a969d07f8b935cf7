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

"""Is this version already on the registry, and is it the same bits?

Verdicts::

    clear      version not on the registry → publish
    identical  on the registry, same fingerprint → skip, success
    different  on the registry, other fingerprint → fail the run
    unknown    on the registry, no comparable fingerprint → skip, warn

The registry's ``dist.shasum`` (SHA-1) is compared with the artifact's
SHA-1. When the registry omits it, a ``sha512-`` ``dist.integrity`` is
compared instead.

Registry errors are never turned into a verdict. A 401 is not a 404:
the :class:`~publishkit.errors.PublishKitError` propagates so the caller
records a pre-validation failure.

Only npm targets are checked here. JSR reports conflicts through its
own publish command.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from publishkit.backends.registry import RegistryClient, VersionMetadata
from publishkit.logging import get_logger
from publishkit.packer import Artifact
from publishkit.results import AlreadyPublishedReason
from publishkit.targets import PublishProtocol, Target

logger = get_logger(__name__)

RegistryFactory = Callable[[Target], RegistryClient]


class ConflictVerdict(str, Enum):
    """Outcome of comparing a local artifact with the registry."""

    CLEAR = 'clear'
    IDENTICAL = 'identical'
    DIFFERENT = 'different'
    UNKNOWN = 'unknown'

    @property
    def already_published_reason(self) -> AlreadyPublishedReason | None:
        """The matching :class:`AlreadyPublishedReason`; ``None`` for ``clear``."""
        if self is ConflictVerdict.CLEAR:
            return None
        return AlreadyPublishedReason(self.value)


@dataclass(frozen=True)
class ConflictCheck:
    """A verdict plus the fingerprints it was based on."""

    verdict: ConflictVerdict
    local_integrity: str | None = None
    remote_integrity: str | None = None
    dist_tags: dict[str, str] = field(default_factory=dict)


def compare(artifact: Artifact | None, remote: VersionMetadata) -> ConflictCheck:
    """Compare an artifact's fingerprints with a published version's."""
    tags = dict(remote.dist_tags)
    if artifact is not None and artifact.shasum and remote.shasum:
        local, theirs = artifact.shasum, remote.shasum
    elif artifact is not None and artifact.integrity and remote.integrity and remote.integrity.startswith('sha512-'):
        local, theirs = artifact.integrity, remote.integrity
    else:
        return ConflictCheck(
            verdict=ConflictVerdict.UNKNOWN,
            local_integrity=artifact.shasum if artifact else None,
            remote_integrity=remote.shasum or remote.integrity,
            dist_tags=tags,
        )
    verdict = ConflictVerdict.IDENTICAL if local == theirs else ConflictVerdict.DIFFERENT
    return ConflictCheck(verdict=verdict, local_integrity=local, remote_integrity=theirs, dist_tags=tags)


class VersionConflictChecker:
    """Checks npm targets against their registries.

    Args:
        registry_for: Returns the registry client for a target.
    """

    def __init__(self, registry_for: RegistryFactory) -> None:
        """Initialize with a registry client factory."""
        self._registry_for = registry_for

    async def check(
        self,
        target: Target,
        package_name: str,
        version: str,
        artifact: Artifact | None,
    ) -> ConflictCheck:
        """Decide whether ``package_name@version`` may be published to ``target``.

        Raises:
            PublishKitError: When the registry cannot answer.
            ValueError: For a JSR target.
        """
        if target.protocol is not PublishProtocol.NPM:
            raise ValueError('Only npm targets are checked against a registry')

        remote = await self._registry_for(target).version_metadata(package_name, version)
        if remote is None:
            logger.debug('version_clear', package=package_name, version=version, registry=target.display_name)
            return ConflictCheck(verdict=ConflictVerdict.CLEAR)

        result = compare(artifact, remote)
        if result.verdict is ConflictVerdict.IDENTICAL:
            logger.info(
                'version_identical',
                package=package_name,
                version=version,
                registry=target.display_name,
                dist_tags=result.dist_tags,
            )
        elif result.verdict is ConflictVerdict.DIFFERENT:
            logger.error(
                'version_content_mismatch',
                package=package_name,
                version=version,
                registry=target.display_name,
                local=result.local_integrity,
                remote=result.remote_integrity,
            )
        else:
            logger.warning(
                'version_integrity_unknown',
                package=package_name,
                version=version,
                registry=target.display_name,
            )
        return result


__all__ = [
    'ConflictCheck',
    'ConflictVerdict',
    'RegistryFactory',
    'VersionConflictChecker',
    'compare',
]
