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

"""Pack a package once and fingerprint the tarball.

The same :class:`Artifact` is used for the registry conflict check and
for every npm target's publish call, so the bytes that were validated
are exactly the bytes that get uploaded.

Digests (all over the same tarball bytes)::

    digest     sha256:<hex>      attestation subject, independent of filename
    shasum     <hex sha1>        compared with the registry's dist.shasum
    integrity  sha512-<base64>   compared with the registry's dist.integrity

:meth:`ArtifactPacker.pack` never raises. A missing artifact means
pre-validation cannot proceed, which is not the same as "safe".
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass
from pathlib import Path

import aiofiles

from publishkit.backends._run import TimeoutExpired
from publishkit.backends.pm import NpmFrontEnd
from publishkit.logging import get_logger

log = get_logger('publishkit.packer')


@dataclass(frozen=True)
class Artifact:
    """A packed tarball and its fingerprints.

    Attributes:
        path: Absolute tarball path.
        digest: ``sha256:<hex>`` of the tarball bytes.
        filename: Tarball file name as reported by ``npm pack``.
        shasum: Hex SHA-1 of the tarball bytes (npm's ``dist.shasum``).
        integrity: ``sha512-<base64>`` SRI string (npm's ``dist.integrity``).
    """

    path: Path
    digest: str
    filename: str
    shasum: str = ''
    integrity: str = ''


@dataclass(frozen=True)
class PackOutcome:
    """Either an artifact or the reason there is none."""

    artifact: Artifact | None = None
    error: str = ''

    @property
    def ok(self) -> bool:
        """Whether packing produced an artifact."""
        return self.artifact is not None


def fingerprint(content: bytes) -> tuple[str, str, str]:
    """Return ``(sha256 digest, sha1 shasum, sha512 integrity)`` for tarball bytes."""
    digest = f'sha256:{hashlib.sha256(content).hexdigest()}'
    shasum = hashlib.sha1(content).hexdigest()  # noqa: S324 - npm's dist.shasum is SHA-1
    integrity = 'sha512-' + base64.b64encode(hashlib.sha512(content).digest()).decode('ascii')
    return digest, shasum, integrity


def parse_pack_filename(stdout: str) -> str | None:
    """Extract the tarball filename from ``npm pack --json`` output.

    Lifecycle scripts may print before the JSON listing, so parsing
    starts at the first ``[``.
    """
    start = stdout.find('[')
    if start < 0:
        return None
    try:
        listing = json.loads(stdout[start:])
    except json.JSONDecodeError:
        return None
    if not isinstance(listing, list) or not listing or not isinstance(listing[0], dict):
        return None
    filename = listing[0].get('filename')
    return filename if isinstance(filename, str) and filename else None


class ArtifactPacker:
    """Runs the pack command and fingerprints its output.

    Args:
        npm: The npm front-end used to run ``npm pack``.
    """

    def __init__(self, npm: NpmFrontEnd) -> None:
        """Initialize with an npm front-end."""
        self._npm = npm

    async def pack(self, directory: Path) -> PackOutcome:
        """Pack ``directory`` and fingerprint the resulting tarball."""
        try:
            result = await self._npm.pack(directory)
        except (OSError, TimeoutExpired) as exc:
            log.warning('pack_failed', directory=str(directory), error=str(exc))
            return PackOutcome(error=f'Failed to run npm pack: {exc}')

        if not result.ok:
            log.warning('pack_failed', directory=str(directory), return_code=result.return_code)
            detail = result.stderr.strip() or f'exit code {result.return_code}'
            return PackOutcome(error=f'npm pack failed: {detail}')

        filename = parse_pack_filename(result.stdout)
        if filename is None:
            log.warning('pack_no_filename', directory=str(directory))
            return PackOutcome(error='npm pack did not return a filename')

        tarball = directory / filename
        try:
            async with aiofiles.open(tarball, 'rb') as f:
                content = await f.read()
        except OSError:
            log.warning('pack_tarball_missing', path=str(tarball))
            return PackOutcome(error=f'Tarball not found at expected path: {tarball}')

        digest, shasum, integrity = fingerprint(content)
        log.info('packed', filename=filename, digest=digest)
        return PackOutcome(
            artifact=Artifact(
                path=tarball.resolve(),
                digest=digest,
                filename=filename,
                shasum=shasum,
                integrity=integrity,
            )
        )


__all__ = [
    'Artifact',
    'ArtifactPacker',
    'PackOutcome',
    'fingerprint',
    'parse_pack_filename',
]
