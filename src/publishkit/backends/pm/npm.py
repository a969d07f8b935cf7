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

"""npm CLI front-end for publishkit.

The :class:`NpmCli` implements the
:class:`~publishkit.backends.pm.NpmFrontEnd` protocol by running npm
through the workspace's package manager.

CLI commands used:

- ``npm pack --json``: Create a tarball in the package directory and
  print a JSON listing (``[{"filename": ..., "shasum": ...}]``).
  See: https://docs.npmjs.com/cli/commands/npm-pack
- ``npm publish <tarball> --registry R [--provenance] --access A
  [--tag T]``: Publish the exact bytes that were validated.
  See: https://docs.npmjs.com/cli/commands/npm-publish
- ``npm publish --dry-run ...``: Native dry run from the package
  directory; nothing is uploaded.

``--tag`` is omitted for ``latest`` (npm's default) so that registries
which reject explicit dist-tags on first publish still work.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path

from publishkit.backends._run import CommandResult, run_command
from publishkit.backends.pm._commands import npm_command
from publishkit.logging import get_logger

log = get_logger('publishkit.backends.pm.npm')


def publish_flags(
    *,
    registry: str | None,
    access: str | None,
    provenance: bool,
    tag: str,
) -> list[str]:
    """Return the ``npm publish`` flags derived from a target."""
    flags: list[str] = []
    if registry:
        flags.extend(['--registry', registry])
    if provenance:
        flags.append('--provenance')
    if access:
        flags.extend(['--access', access])
    if tag and tag != 'latest':
        flags.extend(['--tag', tag])
    return flags


class NpmCli:
    """npm front-end run through the workspace's package manager.

    Args:
        package_manager: ``npm``, ``pnpm``, ``yarn`` or ``bun``.
    """

    def __init__(self, package_manager: str = 'npm') -> None:
        """Initialize with the package manager used to launch npm."""
        self._pm = package_manager
        self._prefix = npm_command(package_manager)

    @property
    def package_manager(self) -> str:
        """The package manager npm is launched through."""
        return self._pm

    async def pack(self, directory: Path) -> CommandResult:
        """Pack ``directory`` into a tarball written next to its package.json."""
        cmd = [*self._prefix, 'pack', '--json']
        log.info('pack', directory=str(directory))
        return await asyncio.to_thread(run_command, cmd, cwd=directory)

    async def publish(
        self,
        tarball: Path,
        *,
        directory: Path,
        registry: str | None,
        access: str | None,
        provenance: bool,
        tag: str,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Publish a tarball produced by :meth:`pack`.

        Args:
            tarball: Path to the ``.tgz`` to upload.
            directory: Working directory (the target's publish directory).
            registry: Registry URL (``--registry``).
            access: ``public`` or ``restricted`` (``--access``).
            provenance: Sign a provenance statement (``--provenance``).
            tag: Dist-tag; ``latest`` adds no flag.
            env: Per-call credentials for this registry.
        """
        cmd = [
            *self._prefix,
            'publish',
            str(tarball),
            *publish_flags(registry=registry, access=access, provenance=provenance, tag=tag),
        ]
        log.info('publish', tarball=tarball.name, registry=registry)
        return await asyncio.to_thread(run_command, cmd, cwd=directory, env=env)

    async def publish_dry_run(
        self,
        directory: Path,
        *,
        registry: str | None,
        access: str | None,
        provenance: bool,
        tag: str,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run ``npm publish --dry-run`` with the target's flags."""
        cmd = [
            *self._prefix,
            'publish',
            '--dry-run',
            *publish_flags(registry=registry, access=access, provenance=provenance, tag=tag),
        ]
        log.info('publish_dry_run', directory=str(directory), registry=registry)
        return await asyncio.to_thread(run_command, cmd, cwd=directory, env=env)


__all__ = [
    'NpmCli',
    'publish_flags',
]
