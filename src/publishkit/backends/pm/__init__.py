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

"""Publish CLI front-ends for publishkit.

Registries are driven through their own command-line tools rather than
reimplemented wire protocols. Two protocols cover them:

- :class:`NpmFrontEnd`: ``npm pack`` / ``npm publish`` for any
  npm-compatible registry (:class:`~publishkit.backends.pm.npm.NpmCli`).
- :class:`JsrFrontEnd`: ``jsr publish``
  (:class:`~publishkit.backends.pm.jsr.JsrCli`).

All methods are async; blocking subprocess calls are dispatched to
``asyncio.to_thread()``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from publishkit.backends._run import CommandResult
from publishkit.backends.pm._commands import (
    PACKAGE_MANAGERS as PACKAGE_MANAGERS,
    npm_command as npm_command,
    runner_command as runner_command,
)
from publishkit.backends.pm.jsr import JsrCli as JsrCli
from publishkit.backends.pm.npm import NpmCli as NpmCli

__all__ = [
    'PACKAGE_MANAGERS',
    'JsrCli',
    'JsrFrontEnd',
    'NpmCli',
    'NpmFrontEnd',
    'npm_command',
    'runner_command',
]


@runtime_checkable
class NpmFrontEnd(Protocol):
    """Protocol for npm-compatible pack and publish operations."""

    async def pack(self, directory: Path) -> CommandResult:
        """Run ``npm pack --json`` in ``directory``."""
        ...

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
        """Publish a pre-built tarball."""
        ...

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
        """Run the registry's native dry-run publish for ``directory``."""
        ...


@runtime_checkable
class JsrFrontEnd(Protocol):
    """Protocol for JSR publish operations."""

    async def publish(self, directory: Path, *, env: Mapping[str, str] | None = None) -> CommandResult:
        """Publish the package in ``directory`` to JSR."""
        ...

    async def publish_dry_run(self, directory: Path, *, env: Mapping[str, str] | None = None) -> CommandResult:
        """Validate the package in ``directory`` against JSR without uploading."""
        ...
