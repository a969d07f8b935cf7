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

"""Workspace manifests and member discovery.

Reads ``package.json`` files and finds where each workspace member
lives, so a release list of ``{name, version}`` pairs can be mapped to
package directories and their dependency edges.

Member globs come from ``pnpm-workspace.yaml`` when present, otherwise
from the ``workspaces`` field of the root ``package.json`` (npm, yarn
and bun). A repository with neither is a single-package repo whose
root ``package.json`` is the only member.

All file reads are async (``aiofiles``).
"""

from __future__ import annotations

import fnmatch
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles

from publishkit.errors import E, PublishKitError
from publishkit.logging import get_logger

log = get_logger('publishkit.workspace')

MANIFEST_NAME = 'package.json'


@dataclass(frozen=True)
class Manifest:
    """The parts of a ``package.json`` the publish engine reads.

    Attributes:
        name: ``name`` field, empty if absent.
        version: ``version`` field, empty if absent.
        private: ``True`` only when ``"private": true``.
        publish_config: ``publishConfig`` object, or ``None``.
        dependencies: Runtime ``dependencies`` (name to range).
        exports: ``exports`` field, or ``None``.
        path: File the manifest was read from, if any.
    """

    name: str = ''
    version: str = ''
    private: bool = False
    publish_config: dict[str, Any] | None = None
    dependencies: dict[str, str] = field(default_factory=dict)
    exports: Any = None  # noqa: ANN401 - exports is free-form JSON
    path: Path | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, path: Path | None = None) -> Manifest:
        """Build a manifest from parsed ``package.json`` data."""
        publish_config = data.get('publishConfig')
        deps = data.get('dependencies')
        return cls(
            name=str(data.get('name') or ''),
            version=str(data.get('version') or ''),
            private=data.get('private') is True,
            publish_config=dict(publish_config) if isinstance(publish_config, dict) else None,
            dependencies={str(k): str(v) for k, v in deps.items()} if isinstance(deps, dict) else {},
            exports=data.get('exports'),
            path=path,
        )


async def read_text(path: Path) -> str:
    """Read a UTF-8 text file asynchronously via aiofiles."""
    try:
        async with aiofiles.open(path, encoding='utf-8') as f:
            return await f.read()
    except OSError as exc:
        raise PublishKitError(
            code=E.WORKSPACE_PARSE_ERROR,
            message=f'Failed to read {path}: {exc}',
            hint=f'Check that {path} exists and is readable.',
        ) from exc


def parse_json_object(text: str, path: Path) -> dict[str, Any]:  # noqa: ANN401 - JSON values are untyped
    """Parse JSON text that must be an object."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PublishKitError(
            code=E.WORKSPACE_PARSE_ERROR,
            message=f'Failed to parse {path}: {exc}',
            hint=f'Check that {path} contains valid JSON.',
        ) from exc
    if not isinstance(data, dict):
        raise PublishKitError(
            code=E.WORKSPACE_PARSE_ERROR,
            message=f'{path} is not a JSON object',
            hint=f'Expected a JSON object at the top level of {path}.',
        )
    return data


async def read_json_object(path: Path) -> dict[str, Any]:  # noqa: ANN401 - JSON values are untyped
    """Read and parse a JSON object file."""
    return parse_json_object(await read_text(path), path)


async def read_manifest(path: Path) -> Manifest:
    """Read a package manifest.

    Args:
        path: A package directory or a ``package.json`` file.

    Raises:
        PublishKitError: ``PK-WORKSPACE-PARSE-ERROR`` if the file is
            missing, unreadable, or not a JSON object.
    """
    manifest_path = path / MANIFEST_NAME if path.is_dir() else path
    data = await read_json_object(manifest_path)
    return Manifest.from_dict(data, path=manifest_path)


def _parse_workspace_yaml(text: str) -> list[str]:
    """Read the ``packages:`` list from ``pnpm-workspace.yaml``.

    The file is always a flat list of globs::

        packages:
          - 'packages/*'
          - '!packages/scratch'

    so it is read line by line rather than pulling in a YAML parser.
    Other top-level keys (``catalog:``, ``onlyBuiltDependencies:``)
    are skipped.
    """
    globs: list[str] = []
    in_packages = False
    for line in text.splitlines():
        stripped = line.split('#', 1)[0].strip()
        if not stripped:
            continue
        if not line[:1].isspace() and stripped.endswith(':'):
            in_packages = stripped[:-1].strip() == 'packages'
            continue
        if in_packages and stripped.startswith('-'):
            value = stripped[1:].strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
                value = value[1:-1]
            globs.append(value)
    return globs


def _workspace_globs_from_manifest(data: Mapping[str, Any]) -> list[str]:  # noqa: ANN401
    workspaces = data.get('workspaces')
    if isinstance(workspaces, dict):
        workspaces = workspaces.get('packages')
    if isinstance(workspaces, list):
        return [str(w) for w in workspaces]
    return []


def _expand_globs(root: Path, patterns: Iterable[str]) -> list[Path]:
    """Expand member globs into directories that hold a package.json."""
    include = [p for p in patterns if not p.startswith('!')]
    exclude = [p[1:] for p in patterns if p.startswith('!')]
    found: dict[Path, None] = {}
    for pattern in include:
        for candidate in sorted(root.glob(pattern.rstrip('/'))):
            if not (candidate / MANIFEST_NAME).is_file():
                continue
            rel = candidate.relative_to(root).as_posix()
            if any(fnmatch.fnmatch(rel, ex.rstrip('/')) for ex in exclude):
                continue
            found[candidate.resolve()] = None
    return list(found)


async def discover_members(root: Path) -> dict[str, Path]:
    """Map every workspace member's name to its directory.

    Args:
        root: Workspace root.

    Returns:
        Package name to absolute directory. Nameless manifests (the
        workspace root of a monorepo) are skipped.

    Raises:
        PublishKitError: ``PK-WORKSPACE-DUPLICATE-PACKAGE`` when two
            members share a name, ``PK-WORKSPACE-PARSE-ERROR`` for a
            malformed manifest.
    """
    root = root.resolve()
    pnpm_yaml = root / 'pnpm-workspace.yaml'
    root_manifest = root / MANIFEST_NAME

    globs: list[str] = []
    if pnpm_yaml.is_file():
        globs = _parse_workspace_yaml(await read_text(pnpm_yaml))
    elif root_manifest.is_file():
        globs = _workspace_globs_from_manifest(await read_json_object(root_manifest))

    members: dict[str, Path] = {}
    for directory in _expand_globs(root, globs):
        manifest = await read_manifest(directory)
        if not manifest.name:
            log.debug('skipped_nameless_package', path=str(directory))
            continue
        if manifest.name in members:
            raise PublishKitError(
                code=E.WORKSPACE_DUPLICATE_PACKAGE,
                message=f"Duplicate package name '{manifest.name}' at {directory} and {members[manifest.name]}",
                hint='Each workspace package must have a unique name.',
            )
        members[manifest.name] = directory

    if not members and root_manifest.is_file():
        manifest = await read_manifest(root)
        if manifest.name:
            log.debug('single_package_repo', name=manifest.name)
            members[manifest.name] = root

    log.info('discovered_members', count=len(members))
    return members


def find_package_path(name: str, members: Mapping[str, Path], *, subdir: str | None = None) -> Path | None:
    """Return the directory of workspace member ``name``.

    Args:
        name: Package name from the release list.
        members: Output of :func:`discover_members`.
        subdir: Optional publish subdirectory appended to the result.

    Returns:
        The directory, or ``None`` when ``name`` is not a member.
    """
    path = members.get(name)
    if path is None:
        log.debug('not_a_member', package=name)
        return None
    return path / subdir if subdir else path


def dependency_edges(manifests: Mapping[str, Manifest], names: Iterable[str] | None = None) -> dict[str, set[str]]:
    """Derive the publish-order edge set from runtime dependencies.

    Only ``dependencies`` count. Dev, peer and optional dependencies do
    not have to be on the registry for a package to install, so they do
    not constrain publish order.

    Args:
        manifests: Package name to manifest.
        names: Release set; defaults to every key of ``manifests``.

    Returns:
        ``edges[p]`` = release-set names ``p`` depends on.
    """
    release = set(manifests if names is None else names)
    return {
        name: {dep for dep in manifest.dependencies if dep in release and dep != name}
        for name, manifest in manifests.items()
        if name in release
    }


__all__ = [
    'MANIFEST_NAME',
    'Manifest',
    'dependency_edges',
    'discover_members',
    'find_package_path',
    'parse_json_object',
    'read_json_object',
    'read_manifest',
    'read_text',
]
