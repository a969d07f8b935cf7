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

"""Post-publish attestation hook.

Packages published with npm provenance already carry a transparency
log entry. For the rest, an external attestor can be asked to produce
one after every target of the package succeeded.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ AttestationRequest  │ What was published: name, version, where it   │
    │                     │ lives, and the tarball's sha256 digest.       │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Attestor            │ Anything that turns a request into a URL.     │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ CommandAttestor     │ Runs a configured shell command with          │
    │                     │ ${name}, ${version}, ${digest}, ${directory}. │
    │                     │ The first http(s) line it prints is the URL.  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ attest_package      │ Calls the attestor and never lets a failure   │
    │                     │ turn a published package into a failed one.   │
    └─────────────────────┴────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from publishkit.backends._run import run_command
from publishkit.logging import get_logger

log = get_logger('publishkit.attestation')


@dataclass(frozen=True)
class AttestationRequest:
    """What to attest.

    Attributes:
        package_name: Published package name.
        version: Published version.
        directory: Package directory.
        tarball_digest: ``sha256:<hex>`` of the published tarball, when packed.
    """

    package_name: str
    version: str
    directory: Path
    tarball_digest: str | None = None


@dataclass(frozen=True)
class AttestationResult:
    """Outcome of one attestation."""

    success: bool
    attestation_url: str | None = None
    error: str = ''


@runtime_checkable
class Attestor(Protocol):
    """Produces an attestation for a published package."""

    async def attest(self, request: AttestationRequest) -> AttestationResult:
        """Attest ``request`` and return the result."""
        ...


class NullAttestor:
    """Attestor used when none is configured."""

    async def attest(self, request: AttestationRequest) -> AttestationResult:
        """Report that no attestation was produced."""
        return AttestationResult(success=False, error='no attestor configured')


def expand_template(command: str, variables: dict[str, str]) -> str:
    """Expand ``${variable}`` placeholders in an attestor command."""
    result = command
    for key, value in variables.items():
        result = result.replace(f'${{{key}}}', value)
    return result


def _first_url(text: str) -> str | None:
    for line in text.splitlines():
        line = line.strip()
        if line.startswith(('https://', 'http://')):
            return line
    return None


class CommandAttestor:
    """Runs an external command per package.

    Args:
        command: Shell-style command template.
        cwd: Working directory for the command.
    """

    def __init__(self, command: str, *, cwd: Path | None = None) -> None:
        """Initialize with a command template."""
        self._command = command
        self._cwd = cwd

    async def attest(self, request: AttestationRequest) -> AttestationResult:
        """Run the command and pick the attestation URL from its stdout."""
        expanded = expand_template(
            self._command,
            {
                'name': request.package_name,
                'version': request.version,
                'digest': request.tarball_digest or '',
                'directory': str(request.directory),
            },
        )
        result = await asyncio.to_thread(run_command, shlex.split(expanded), cwd=self._cwd)
        if not result.ok:
            return AttestationResult(
                success=False,
                error=result.stderr.strip() or f'Attestor exited with code {result.return_code}',
            )
        url = _first_url(result.stdout)
        if url is None:
            return AttestationResult(success=False, error='Attestor printed no URL')
        return AttestationResult(success=True, attestation_url=url)


async def attest_package(attestor: Attestor, request: AttestationRequest) -> str | None:
    """Attest one package; return its URL or ``None``.

    Failures are logged as warnings only.
    """
    try:
        result = await attestor.attest(request)
    except Exception as exc:  # noqa: BLE001 - attestation never fails a publish
        log.warning(
            'attestation_failed',
            package=request.package_name,
            version=request.version,
            error=str(exc) or type(exc).__name__,
        )
        return None
    if not result.success:
        if isinstance(attestor, NullAttestor):
            log.debug('attestation_skipped', package=request.package_name)
        else:
            log.warning(
                'attestation_failed',
                package=request.package_name,
                version=request.version,
                error=result.error,
            )
        return None
    log.info('attestation_created', package=request.package_name, url=result.attestation_url)
    return result.attestation_url


__all__ = [
    'AttestationRequest',
    'AttestationResult',
    'Attestor',
    'CommandAttestor',
    'NullAttestor',
    'attest_package',
    'expand_template',
]
