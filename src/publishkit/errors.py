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

"""Structured error system for publishkit.

Every error has a unique ``PK-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ErrorCode           │ A unique named ID like "PK-CONFIG-NOT-FOUND"  │
    │                     │ for each error. Readable at a glance.         │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ PublishKitError     │ An exception you can raise. Carries the       │
    │                     │ error card so renderers can display it.       │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ERRORS catalog      │ Pre-built error cards for common mistakes.    │
    │                     │ Like a FAQ for publish problems.              │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ explain()           │ Looks up an error code and prints details.    │
    └─────────────────────┴────────────────────────────────────────────────┘

Code categories::

    PK-CONFIG-*          Configuration errors (never retried)
    PK-WORKSPACE-*       Manifest and workspace discovery errors
    PK-GRAPH-*           Dependency graph errors
    PK-AUTH-*            Registry credential and reachability errors
    PK-BUILD-*           Build errors
    PK-PREVALIDATION-*   Registry checks before any publish
    PK-PUBLISH-*         Publish command errors
    PK-RELEASES-*        Release list errors

Usage::

    from publishkit.errors import PublishKitError, E

    raise PublishKitError(
        code=E.CONFIG_UNKNOWN_TARGET,
        message="Unknown target shorthand: 'npmjs'",
        hint="Use 'npm', 'github', 'jsr', or a registry URL.",
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all publishkit diagnostic codes."""

    # Configuration
    CONFIG_NOT_FOUND = 'PK-CONFIG-NOT-FOUND'
    CONFIG_INVALID_KEY = 'PK-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'PK-CONFIG-INVALID-VALUE'
    CONFIG_UNKNOWN_TARGET = 'PK-CONFIG-UNKNOWN-TARGET'

    # Workspace
    WORKSPACE_NOT_FOUND = 'PK-WORKSPACE-NOT-FOUND'
    WORKSPACE_NO_MEMBERS = 'PK-WORKSPACE-NO-MEMBERS'
    WORKSPACE_PARSE_ERROR = 'PK-WORKSPACE-PARSE-ERROR'
    WORKSPACE_DUPLICATE_PACKAGE = 'PK-WORKSPACE-DUPLICATE-PACKAGE'
    WORKSPACE_PACKAGE_NOT_FOUND = 'PK-WORKSPACE-PACKAGE-NOT-FOUND'

    # Dependency graph
    GRAPH_CYCLE_DETECTED = 'PK-GRAPH-CYCLE-DETECTED'

    # Registry auth
    AUTH_TOKEN_MISSING = 'PK-AUTH-TOKEN-MISSING'
    AUTH_REGISTRY_UNREACHABLE = 'PK-AUTH-REGISTRY-UNREACHABLE'
    AUTH_REJECTED = 'PK-AUTH-REJECTED'

    # Build
    BUILD_FAILED = 'PK-BUILD-FAILED'

    # Pre-validation
    PREVALIDATION_FAILED = 'PK-PREVALIDATION-FAILED'
    PREVALIDATION_REGISTRY_ERROR = 'PK-PREVALIDATION-REGISTRY-ERROR'
    PREVALIDATION_CONTENT_MISMATCH = 'PK-PREVALIDATION-CONTENT-MISMATCH'
    PREVALIDATION_PACK_FAILED = 'PK-PREVALIDATION-PACK-FAILED'
    PREVALIDATION_INVALID_TARGET = 'PK-PREVALIDATION-INVALID-TARGET'

    # Publish
    PUBLISH_FAILED = 'PK-PUBLISH-FAILED'
    PUBLISH_TRANSIENT = 'PK-PUBLISH-TRANSIENT'
    PUBLISH_RETRIES_EXHAUSTED = 'PK-PUBLISH-RETRIES-EXHAUSTED'

    # Release list
    RELEASES_PARSE_ERROR = 'PK-RELEASES-PARSE-ERROR'
    RELEASES_STATUS_FAILED = 'PK-RELEASES-STATUS-FAILED'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``PK-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class PublishKitError(Exception):
    """Base exception for all publishkit errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def message(self) -> str:
        """The message without the code prefix."""
        return self.info.message

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint


class PublishKitWarning(UserWarning):
    """Base warning for all publishkit warnings.

    Same structure as :class:`PublishKitError` but rendered instead of
    raised (missing tokens, dependency cycles).
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def hint(self) -> str:
        """Suggestion for addressing this warning, or empty string."""
        return self.info.hint


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.CONFIG_UNKNOWN_TARGET: ErrorInfo(
        code=E.CONFIG_UNKNOWN_TARGET,
        message='A publishConfig.targets entry is not a known shorthand or registry URL.',
        hint="Use 'npm', 'github', 'jsr', an http(s) registry URL, or a target object.",
    ),
    E.WORKSPACE_PARSE_ERROR: ErrorInfo(
        code=E.WORKSPACE_PARSE_ERROR,
        message='A package.json (or jsr.json) could not be read or is not a JSON object.',
        hint='Validate the manifest with a JSON linter.',
    ),
    E.GRAPH_CYCLE_DETECTED: ErrorInfo(
        code=E.GRAPH_CYCLE_DETECTED,
        message='Circular dependency between packages in the release set.',
        hint="Packages are published in the given order. Run 'publishkit order' to inspect.",
    ),
    E.AUTH_TOKEN_MISSING: ErrorInfo(
        code=E.AUTH_TOKEN_MISSING,
        message='A registry token environment variable is not set.',
        hint='Export the variable named by the target tokenEnv before publishing.',
    ),
    E.AUTH_REGISTRY_UNREACHABLE: ErrorInfo(
        code=E.AUTH_REGISTRY_UNREACHABLE,
        message='A custom registry did not answer its ping endpoint.',
        hint='Check the registry URL in publishConfig and network access from CI.',
    ),
    E.BUILD_FAILED: ErrorInfo(
        code=E.BUILD_FAILED,
        message='The shared build command exited non-zero; nothing was published.',
        hint='Run the build script locally and fix the reported errors.',
    ),
    E.PREVALIDATION_FAILED: ErrorInfo(
        code=E.PREVALIDATION_FAILED,
        message='At least one target failed pre-validation; nothing was published.',
        hint='Fix every target listed in the pre-validation report, then re-run.',
    ),
    E.PREVALIDATION_CONTENT_MISMATCH: ErrorInfo(
        code=E.PREVALIDATION_CONTENT_MISMATCH,
        message='The version already exists on the registry with different content.',
        hint='Bump the package version; published versions are immutable.',
    ),
    E.PUBLISH_RETRIES_EXHAUSTED: ErrorInfo(
        code=E.PUBLISH_RETRIES_EXHAUSTED,
        message='A publish command kept failing with network errors.',
        hint='Re-run the publish; already published targets are skipped.',
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"PK-BUILD-FAILED"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def _render(kind: str, style: str, info: ErrorInfo, file: TextIO | None) -> None:
    out = file or sys.stderr
    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(info.message)
        console.print(f'[bold {style}]{kind}\\[{info.code.value}][/bold {style}][bold]: {msg}[/bold]')
        if info.hint:
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(info.hint)}')
        console.print()
    else:
        print(f'{kind}[{info.code.value}]: {info.message}', file=out)  # noqa: T201 - CLI output
        if info.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {info.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


def render_error(exc: PublishKitError, *, file: TextIO | None = None) -> None:
    """Render an error in compiler style, colored when writing to a TTY.

    Output format::

        error[PK-BUILD-FAILED]: Build exited with code 2
          |
          = hint: Run the build script locally and fix the reported errors.
    """
    _render('error', 'red', exc.info, file)


def render_warning(exc: PublishKitWarning, *, file: TextIO | None = None) -> None:
    """Render a warning in the same format as :func:`render_error`."""
    _render('warning', 'yellow', exc.info, file)


__all__ = [
    'E',
    'ERRORS',
    'ErrorCode',
    'ErrorInfo',
    'PublishKitError',
    'PublishKitWarning',
    'explain',
    'render_error',
    'render_warning',
]
