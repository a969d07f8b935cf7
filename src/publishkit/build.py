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

"""The shared build step.

One opaque command builds the whole release set before anything is
packed. Its contract is an exit code plus captured output. Any
non-zero exit, or a failure to launch at all, aborts the run.

Build command by package manager::

    npm   → npm run <script>
    pnpm  → pnpm <script>
    yarn  → yarn <script>
    bun   → bun <script>
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from publishkit.backends._run import CommandResult, TimeoutExpired, run_command
from publishkit.logging import get_logger

log = get_logger('publishkit.build')

DEFAULT_BUILD_SCRIPT = 'ci:build'


@dataclass(frozen=True)
class BuildResult:
    """Exit code and output of the build command."""

    exit_code: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        """Whether the build passed."""
        return self.exit_code == 0

    @property
    def error(self) -> str:
        """The message reported when the build failed."""
        return self.stderr or f'Build exited with code {self.exit_code}'

    @classmethod
    def from_command(cls, result: CommandResult) -> BuildResult:
        """Wrap a :class:`CommandResult`."""
        return cls(exit_code=result.return_code, stdout=result.stdout, stderr=result.stderr)

    @classmethod
    def from_exception(cls, exc: BaseException) -> BuildResult:
        """A build that could not run counts as exit code 1."""
        return cls(exit_code=1, stderr=str(exc) or type(exc).__name__)


@runtime_checkable
class BuildRunner(Protocol):
    """Runs the shared build once."""

    async def run(self) -> BuildResult:
        """Run the build and return its result."""
        ...


def build_command(package_manager: str, script: str = DEFAULT_BUILD_SCRIPT) -> list[str]:
    """Return the argv that runs ``script`` through ``package_manager``."""
    if package_manager == 'npm':
        return ['npm', 'run', script]
    return [package_manager, script]


class ScriptBuildRunner:
    """Runs a package.json script at the workspace root.

    Args:
        root: Workspace root (the working directory of the build).
        package_manager: ``npm``, ``pnpm``, ``yarn`` or ``bun``.
        script: Script name.
    """

    def __init__(self, root: Path, package_manager: str = 'npm', script: str = DEFAULT_BUILD_SCRIPT) -> None:
        """Initialize with the workspace root and script."""
        self._root = root
        self._cmd = build_command(package_manager, script)

    @property
    def command(self) -> list[str]:
        """The build argv."""
        return list(self._cmd)

    async def run(self) -> BuildResult:
        """Run the build; launch failures become a failed result."""
        log.info('build_start', cmd=' '.join(self._cmd), cwd=str(self._root))
        try:
            result = await asyncio.to_thread(run_command, self._cmd, cwd=self._root)
        except (OSError, TimeoutExpired) as exc:
            log.error('build_error', error=str(exc))
            return BuildResult.from_exception(exc)
        build = BuildResult.from_command(result)
        if build.ok:
            log.info('build_ok', duration=result.duration)
        else:
            log.error('build_failed', exit_code=build.exit_code)
        return build


__all__ = [
    'DEFAULT_BUILD_SCRIPT',
    'BuildResult',
    'BuildRunner',
    'ScriptBuildRunner',
    'build_command',
]
