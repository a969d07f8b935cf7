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

"""Publish directory checks run before any registry call.

A target's directory is usually a build output (``dist/``) with its own
``package.json``. These checks catch the mistakes that would otherwise
surface as an opaque publish failure halfway through a release.

Check order::

    1. Directory exists
    2. package.json exists (or jsr.json, for JSR targets)
    3. Manifest is valid JSON
    4. Protocol rules:
         npm → not private, has name and version, scoped on GitHub Packages
         jsr → scoped name, version, exports

A name that differs from the release list is only a warning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from publishkit.errors import PublishKitError
from publishkit.logging import get_logger
from publishkit.targets import PublishProtocol, Target, is_github_registry, registry_display_name
from publishkit.workspace import MANIFEST_NAME, read_json_object

logger = get_logger(__name__)

JSR_MANIFEST_NAME = 'jsr.json'


@dataclass
class DirectoryCheck:
    """Errors and warnings for one target directory."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether the directory can be published from."""
        return not self.errors


def _check_npm(target: Target, pkg: dict[str, Any], expected_name: str, check: DirectoryCheck) -> None:  # noqa: ANN401
    name = pkg.get('name')
    if pkg.get('private') is True:
        check.errors.append(
            f'Built package.json has "private": true - cannot publish to {registry_display_name(target.registry)}'
        )
    if not name:
        check.errors.append("Built package.json missing 'name' field")
    elif name != expected_name:
        check.warnings.append(f'Package name mismatch: expected "{expected_name}", got "{name}"')
    if not pkg.get('version'):
        check.errors.append("Built package.json missing 'version' field")
    if is_github_registry(target.registry) and name and not str(name).startswith('@'):
        check.errors.append(f'GitHub Packages requires scoped package names (@org/name), got: {name}')


def _check_jsr(pkg: dict[str, Any], source: str, check: DirectoryCheck) -> None:  # noqa: ANN401
    name = pkg.get('name')
    if not name:
        check.errors.append(f"{source} missing 'name' field")
    elif not str(name).startswith('@'):
        check.errors.append(f'JSR requires scoped package names (@scope/name), got: {name}')
    if not pkg.get('version'):
        check.errors.append(f"{source} missing 'version' field")
    if not pkg.get('exports'):
        check.errors.append(f"{source} missing 'exports' field")


async def validate_target_directory(target: Target, expected_name: str) -> DirectoryCheck:
    """Validate the directory a target publishes from.

    Args:
        target: The resolved target.
        expected_name: Package name from the release list.

    Returns:
        A :class:`DirectoryCheck`; never raises for content problems.
    """
    check = DirectoryCheck()
    directory: Path = target.directory

    if not directory.is_dir():
        check.errors.append(f'Target directory does not exist: {directory}')
        return check

    manifest_path = directory / MANIFEST_NAME
    is_jsr = target.protocol is PublishProtocol.JSR
    if not manifest_path.is_file():
        jsr_path = directory / JSR_MANIFEST_NAME
        if is_jsr and jsr_path.is_file():
            manifest_path = jsr_path
        else:
            check.errors.append(f'package.json not found in: {directory}')
            return check

    try:
        pkg = await read_json_object(manifest_path)
    except PublishKitError as exc:
        check.errors.append(exc.message)
        return check

    if is_jsr:
        _check_jsr(pkg, manifest_path.name, check)
    else:
        _check_npm(target, pkg, expected_name, check)

    if check.errors:
        logger.warning('target_directory_invalid', directory=str(directory), errors=check.errors)
    for warning in check.warnings:
        logger.warning('target_directory_warning', directory=str(directory), message=warning)
    return check


__all__ = [
    'JSR_MANIFEST_NAME',
    'DirectoryCheck',
    'validate_target_directory',
]
