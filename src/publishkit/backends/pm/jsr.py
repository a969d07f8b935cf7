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

"""JSR CLI front-end for publishkit.

JSR has no registry URL or tarball upload in this model: the ``jsr``
tool reads ``jsr.json`` (or ``package.json``) from the package
directory, builds the upload itself, and authenticates through the CI
provider's OIDC token.

CLI commands used:

- ``jsr publish --allow-dirty``: Publish. ``--allow-dirty`` is needed
  because the release branch carries uncommitted build output.
  See: https://jsr.io/docs/publishing-packages
- ``jsr publish --dry-run``: Validate without uploading.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path

from publishkit.backends._run import CommandResult, run_command
from publishkit.backends.pm._commands import runner_command
from publishkit.logging import get_logger

log = get_logger('publishkit.backends.pm.jsr')


class JsrCli:
    """JSR front-end run through the workspace's package runner.

    Args:
        package_manager: ``npm``, ``pnpm``, ``yarn`` or ``bun``.
    """

    def __init__(self, package_manager: str = 'npm') -> None:
        """Initialize with the package manager used to launch ``jsr``."""
        self._prefix = runner_command(package_manager)

    async def publish(self, directory: Path, *, env: Mapping[str, str] | None = None) -> CommandResult:
        """Publish the package in ``directory`` to JSR."""
        cmd = [*self._prefix, 'jsr', 'publish', '--allow-dirty']
        log.info('jsr_publish', directory=str(directory))
        return await asyncio.to_thread(run_command, cmd, cwd=directory, env=env)

    async def publish_dry_run(self, directory: Path, *, env: Mapping[str, str] | None = None) -> CommandResult:
        """Run ``jsr publish --dry-run`` in ``directory``."""
        cmd = [*self._prefix, 'jsr', 'publish', '--dry-run']
        log.info('jsr_publish_dry_run', directory=str(directory))
        return await asyncio.to_thread(run_command, cmd, cwd=directory, env=env)


__all__ = [
    'JsrCli',
]
