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

"""Classify publish command output.

npm and jsr report most outcomes only as text. Everything that reads
that text lives here as pure functions so the patterns can change
without touching the executor.

Categories::

    none               exit code 0
    already_published  the version exists (npm or jsr phrasing)
    auth               E401 / E403 / ENEEDAUTH / Unauthorized / Forbidden
    not_found          E404 / "is not in this registry"
    network            ECONNRESET / ETIMEDOUT / EAI_AGAIN / ENOTFOUND /
                       ECONNREFUSED / socket hang up
    unknown            anything else

Only ``network`` is retried.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from publishkit.targets import PublishProtocol


class ErrorCategory(str, Enum):
    """What a publish command's output means."""

    NONE = 'none'
    ALREADY_PUBLISHED = 'already_published'
    AUTH = 'auth'
    NOT_FOUND = 'not_found'
    NETWORK = 'network'
    UNKNOWN = 'unknown'


_NPM_ALREADY_PUBLISHED = 'cannot publish over previously published version'
_NPM_ALREADY_PUBLISHED_ALT = 'You cannot publish over the previously published versions'

_AUTH_MARKERS = ('E401', 'E403', 'ENEEDAUTH', 'Unauthorized', 'Forbidden')
_NOT_FOUND_MARKERS = ('E404', 'is not in this registry')
_NETWORK_MARKERS = ('ECONNRESET', 'ETIMEDOUT', 'EAI_AGAIN', 'ENOTFOUND', 'ECONNREFUSED')
_SOCKET_HANG_UP = re.compile(r'socket hang up', re.IGNORECASE)

_PROVENANCE_URL = re.compile(r'Provenance statement published to (https://\S+)')
_JSR_URL = re.compile(r'https://jsr\.io/@\S+')
_PACKAGE_SIZE = re.compile(r'package size:\s*([^\n]+)')
_UNPACKED_SIZE = re.compile(r'unpacked size:\s*([^\n]+)')
_TOTAL_FILES = re.compile(r'total files:\s*(\d+)')


def is_already_published(stdout: str, stderr: str, protocol: PublishProtocol = PublishProtocol.NPM) -> bool:
    """Whether the output says this version already exists."""
    if protocol is PublishProtocol.JSR:
        return (
            'already exists' in stdout
            or 'already exists' in stderr
            or ('Version' in stderr and 'already published' in stderr)
        )
    return _NPM_ALREADY_PUBLISHED in stdout or _NPM_ALREADY_PUBLISHED in stderr or _NPM_ALREADY_PUBLISHED_ALT in stderr


def is_network_error(text: str) -> bool:
    """Whether ``text`` carries a transient network error code."""
    return any(marker in text for marker in _NETWORK_MARKERS) or bool(_SOCKET_HANG_UP.search(text))


def classify_output(
    exit_code: int,
    stdout: str,
    stderr: str,
    protocol: PublishProtocol = PublishProtocol.NPM,
) -> ErrorCategory:
    """Map a command's exit code and output to an :class:`ErrorCategory`."""
    if exit_code == 0:
        return ErrorCategory.NONE
    if is_already_published(stdout, stderr, protocol):
        return ErrorCategory.ALREADY_PUBLISHED
    combined = f'{stdout}\n{stderr}'
    if any(marker in combined for marker in _AUTH_MARKERS):
        return ErrorCategory.AUTH
    if any(marker in combined for marker in _NOT_FOUND_MARKERS):
        return ErrorCategory.NOT_FOUND
    if is_network_error(combined):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


def extract_provenance_url(output: str) -> str | None:
    """Return the transparency log URL npm prints after a provenance publish."""
    match = _PROVENANCE_URL.search(output)
    return match.group(1) if match else None


def extract_jsr_url(output: str) -> str | None:
    """Return the ``https://jsr.io/@scope/name`` URL from jsr output."""
    match = _JSR_URL.search(output)
    return match.group(0) if match else None


@dataclass(frozen=True)
class DryRunStats:
    """Package statistics printed by ``npm publish --dry-run``."""

    package_size: str | None = None
    unpacked_size: str | None = None
    total_files: int | None = None


def parse_dry_run_stats(output: str) -> DryRunStats:
    """Parse the ``npm notice`` stats block::

    npm notice package size: 1.2 kB
    npm notice unpacked size: 1.9 kB
    npm notice total files: 5
    """
    package_size = _PACKAGE_SIZE.search(output)
    unpacked_size = _UNPACKED_SIZE.search(output)
    total_files = _TOTAL_FILES.search(output)
    return DryRunStats(
        package_size=package_size.group(1).strip() if package_size else None,
        unpacked_size=unpacked_size.group(1).strip() if unpacked_size else None,
        total_files=int(total_files.group(1)) if total_files else None,
    )


def error_text(stdout: str, stderr: str) -> str:
    """The message to report for a failed command; stderr wins."""
    return stderr.strip() or stdout.strip()


__all__ = [
    'DryRunStats',
    'ErrorCategory',
    'classify_output',
    'error_text',
    'extract_jsr_url',
    'extract_provenance_url',
    'is_already_published',
    'is_network_error',
    'parse_dry_run_stats',
]
