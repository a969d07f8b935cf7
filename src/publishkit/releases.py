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

"""Where the release set comes from.

Two sources produce the same list of :class:`ReleaseEntry`:

- :class:`ReleaseFileSource`, a pre-computed JSON file
  (``--release-file``), either a bare list or
  ``{"releases": [...]}``, with ``name``, ``version`` (or
  ``newVersion``) and an optional ``path``.
- :class:`ChangesetStatusSource`, which asks the changesets CLI what
  the pending changesets will release.

Changeset status commands::

    pnpm  → pnpm changeset status --output=<file>
    yarn  → yarn changeset status --output=<file>
    npm   → npm run changeset status -- --output=<file>

Once ``changeset version`` has consumed the changesets (the usual state
on a release branch) the CLI reports "no changesets"; that is an empty
release list, not an error.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from publishkit.backends._run import run_command
from publishkit.errors import E, PublishKitError
from publishkit.logging import get_logger
from publishkit.workspace import parse_json_object, read_text

log = get_logger('publishkit.releases')

_NO_CHANGESETS = ('no changesets were found', 'No changesets present')


@dataclass(frozen=True)
class ReleaseEntry:
    """One package the run should publish.

    Attributes:
        name: Package name.
        version: New version.
        type: Bump type (``major``/``minor``/``patch``) when known.
        path: Package directory, if the source knows it.
    """

    name: str
    version: str
    type: str = 'patch'
    path: Path | None = None


@runtime_checkable
class ReleaseSource(Protocol):
    """Produces the release set."""

    async def releases(self) -> list[ReleaseEntry]:
        """Return the packages to publish."""
        ...


def _entry(item: object, origin: str, base: Path | None) -> ReleaseEntry:
    if not isinstance(item, dict):
        raise PublishKitError(
            code=E.RELEASES_PARSE_ERROR,
            message=f'Release entry in {origin} is not an object: {item!r}',
        )
    name = item.get('name')
    version = item.get('version') or item.get('newVersion')
    if not isinstance(name, str) or not name or not isinstance(version, str) or not version:
        raise PublishKitError(
            code=E.RELEASES_PARSE_ERROR,
            message=f'Release entry in {origin} needs a name and a version: {item!r}',
            hint='Each entry looks like {"name": "@scope/pkg", "version": "1.2.3"}.',
        )
    raw_path = item.get('path')
    path = None
    if isinstance(raw_path, str) and raw_path:
        path = Path(raw_path) if base is None else (base / raw_path)
    return ReleaseEntry(name=name, version=version, type=str(item.get('type') or 'patch'), path=path)


def parse_release_list(data: Any, origin: str = '<release list>', *, base: Path | None = None) -> list[ReleaseEntry]:  # noqa: ANN401
    """Parse a release list (bare list or ``{"releases": [...]}``)."""
    items = data.get('releases') if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise PublishKitError(
            code=E.RELEASES_PARSE_ERROR,
            message=f'{origin} does not contain a release list',
            hint='Expected a JSON list or an object with a "releases" list.',
        )
    return [_entry(item, origin, base) for item in items]


async def load_release_list(path: Path) -> list[ReleaseEntry]:
    """Read a pre-computed release list; relative paths resolve against its directory."""
    text = await read_text(path)
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise PublishKitError(
            code=E.RELEASES_PARSE_ERROR,
            message=f'Failed to parse {path}: {exc}',
            hint='The release file must be JSON.',
        ) from exc
    entries = parse_release_list(data, str(path), base=path.parent.resolve())
    log.info('release_list_loaded', path=str(path), count=len(entries))
    return entries


def changeset_status_command(package_manager: str, output: str) -> list[str]:
    """The argv that writes changeset status JSON to ``output``."""
    if package_manager in {'pnpm', 'yarn'}:
        return [package_manager, 'changeset', 'status', f'--output={output}']
    return ['npm', 'run', 'changeset', 'status', '--', f'--output={output}']


class ChangesetStatusSource:
    """Reads the release set from ``changeset status``.

    Args:
        root: Workspace root; the status file is written here.
        package_manager: ``npm``, ``pnpm`` or ``yarn``.
    """

    def __init__(self, root: Path, package_manager: str = 'npm') -> None:
        """Initialize with the workspace root and package manager."""
        self._root = root
        self._pm = package_manager

    async def releases(self) -> list[ReleaseEntry]:
        """Run ``changeset status`` and parse its ``releases``.

        Raises:
            PublishKitError: ``PK-RELEASES-STATUS-FAILED`` when the
                command fails for a reason other than "no changesets".
        """
        filename = f'.changeset-status-{int(time.time() * 1000)}.json'
        status_file = self._root / filename
        cmd = changeset_status_command(self._pm, filename)
        try:
            result = await asyncio.to_thread(run_command, cmd, cwd=self._root)
            output = ''
            if status_file.is_file():
                output = await read_text(status_file)
        finally:
            status_file.unlink(missing_ok=True)

        if result.ok and output.strip():
            data = parse_json_object(output, status_file)
            entries = parse_release_list(data.get('releases', []), 'changeset status', base=self._root)
            log.info('changeset_releases', count=len(entries))
            return entries

        if any(marker in result.stderr for marker in _NO_CHANGESETS) or (result.ok and not output.strip()):
            log.info('changesets_consumed')
            return []

        raise PublishKitError(
            code=E.RELEASES_STATUS_FAILED,
            message=f'changeset status failed with exit code {result.return_code}: {result.stderr.strip()}',
            hint='Run the changeset status command locally to see the error.',
        )


class ReleaseFileSource:
    """Reads a pre-computed release list, bypassing changesets.

    Args:
        path: JSON file accepted by :func:`load_release_list`.
    """

    def __init__(self, path: Path) -> None:
        """Initialize with the release list path."""
        self._path = path

    async def releases(self) -> list[ReleaseEntry]:
        """Load the release list from disk."""
        return await load_release_list(self._path)


__all__ = [
    'ChangesetStatusSource',
    'ReleaseEntry',
    'ReleaseFileSource',
    'ReleaseSource',
    'changeset_status_command',
    'load_release_list',
    'parse_release_list',
]
