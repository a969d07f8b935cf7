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

"""Tests for publishkit.workspace."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from publishkit.errors import E, PublishKitError
from publishkit.logging import configure_logging
from publishkit.workspace import (
    Manifest,
    _parse_workspace_yaml,
    dependency_edges,
    discover_members,
    find_package_path,
    read_manifest,
)

configure_logging(quiet=True)


def _write_pkg(directory: Path, **data: Any) -> Path:  # noqa: ANN401
    directory.mkdir(parents=True, exist_ok=True)
    (directory / 'package.json').write_text(json.dumps(data), encoding='utf-8')
    return directory


class TestManifest:
    """Tests for Manifest.from_dict."""

    def test_fields(self) -> None:
        """Known fields are read; unknown ones ignored."""
        manifest = Manifest.from_dict({
            'name': '@s/a',
            'version': '1.2.3',
            'private': True,
            'publishConfig': {'access': 'public'},
            'dependencies': {'@s/b': '^1.0.0'},
            'exports': {'.': './index.js'},
            'scripts': {'build': 'tsc'},
        })
        assert manifest.name == '@s/a'
        assert manifest.private is True
        assert manifest.publish_config == {'access': 'public'}
        assert manifest.dependencies == {'@s/b': '^1.0.0'}
        assert manifest.exports == {'.': './index.js'}

    def test_private_must_be_true(self) -> None:
        """Only a literal true marks a package private."""
        assert Manifest.from_dict({'private': 'true'}).private is False

    def test_non_object_publish_config(self) -> None:
        """A non-object publishConfig is treated as absent."""
        assert Manifest.from_dict({'publishConfig': 'npm'}).publish_config is None


class TestReadManifest:
    """Tests for read_manifest."""

    @pytest.mark.asyncio()
    async def test_directory(self, tmp_path: Path) -> None:
        """A directory path reads its package.json."""
        _write_pkg(tmp_path, name='a', version='1.0.0')
        manifest = await read_manifest(tmp_path)
        assert manifest.name == 'a'
        assert manifest.path == tmp_path / 'package.json'

    @pytest.mark.asyncio()
    async def test_malformed(self, tmp_path: Path) -> None:
        """Invalid JSON is a parse error."""
        (tmp_path / 'package.json').write_text('{not json', encoding='utf-8')
        with pytest.raises(PublishKitError) as exc_info:
            await read_manifest(tmp_path)
        assert exc_info.value.code == E.WORKSPACE_PARSE_ERROR

    @pytest.mark.asyncio()
    async def test_not_object(self, tmp_path: Path) -> None:
        """A JSON array is not a manifest."""
        (tmp_path / 'package.json').write_text('[]', encoding='utf-8')
        with pytest.raises(PublishKitError):
            await read_manifest(tmp_path)

    @pytest.mark.asyncio()
    async def test_missing(self, tmp_path: Path) -> None:
        """A missing file is a parse error, not an OSError."""
        with pytest.raises(PublishKitError):
            await read_manifest(tmp_path / 'package.json')


class TestParseWorkspaceYaml:
    """Tests for _parse_workspace_yaml."""

    def test_packages_list(self) -> None:
        """Quoted and bare globs, comments and other keys."""
        text = (
            '# workspace\n'
            'packages:\n'
            "  - 'packages/*'\n"
            '  - "apps/*"  # apps\n'
            '  - !packages/scratch\n'
            'catalog:\n'
            '  - not-a-glob\n'
        )
        assert _parse_workspace_yaml(text) == ['packages/*', 'apps/*', '!packages/scratch']

    def test_empty(self) -> None:
        """No packages key, no globs."""
        assert _parse_workspace_yaml('onlyBuiltDependencies:\n  - esbuild\n') == []


class TestDiscoverMembers:
    """Tests for discover_members."""

    @pytest.mark.asyncio()
    async def test_pnpm_workspace(self, tmp_path: Path) -> None:
        """pnpm-workspace.yaml globs find members; excludes apply."""
        (tmp_path / 'pnpm-workspace.yaml').write_text(
            "packages:\n  - 'packages/*'\n  - '!packages/scratch'\n",
            encoding='utf-8',
        )
        _write_pkg(tmp_path, name='root', private=True)
        a = _write_pkg(tmp_path / 'packages' / 'a', name='@s/a')
        b = _write_pkg(tmp_path / 'packages' / 'b', name='@s/b')
        _write_pkg(tmp_path / 'packages' / 'scratch', name='@s/scratch')
        (tmp_path / 'packages' / 'no-manifest').mkdir()

        members = await discover_members(tmp_path)
        assert members == {'@s/a': a.resolve(), '@s/b': b.resolve()}

    @pytest.mark.asyncio()
    async def test_package_json_workspaces(self, tmp_path: Path) -> None:
        """npm/yarn ``workspaces`` globs are honored."""
        _write_pkg(tmp_path, name='root', workspaces=['libs/*'])
        lib = _write_pkg(tmp_path / 'libs' / 'x', name='x')
        assert await discover_members(tmp_path) == {'x': lib.resolve()}

    @pytest.mark.asyncio()
    async def test_yarn_workspaces_object(self, tmp_path: Path) -> None:
        """``workspaces: {packages: [...]}`` is accepted."""
        _write_pkg(tmp_path, name='root', workspaces={'packages': ['libs/*']})
        _write_pkg(tmp_path / 'libs' / 'x', name='x')
        assert list(await discover_members(tmp_path)) == ['x']

    @pytest.mark.asyncio()
    async def test_single_package(self, tmp_path: Path) -> None:
        """A repo without workspaces is its own single member."""
        _write_pkg(tmp_path, name='solo', version='1.0.0')
        assert await discover_members(tmp_path) == {'solo': tmp_path.resolve()}

    @pytest.mark.asyncio()
    async def test_duplicate_names(self, tmp_path: Path) -> None:
        """Two members with one name are rejected."""
        _write_pkg(tmp_path, name='root', workspaces=['a', 'b'])
        _write_pkg(tmp_path / 'a', name='dup')
        _write_pkg(tmp_path / 'b', name='dup')
        with pytest.raises(PublishKitError) as exc_info:
            await discover_members(tmp_path)
        assert exc_info.value.code == E.WORKSPACE_DUPLICATE_PACKAGE


class TestFindPackagePath:
    """Tests for find_package_path."""

    def test_found(self, tmp_path: Path) -> None:
        """Known names map to their directory."""
        assert find_package_path('a', {'a': tmp_path}) == tmp_path

    def test_subdir(self, tmp_path: Path) -> None:
        """A subdirectory is appended."""
        assert find_package_path('a', {'a': tmp_path}, subdir='dist') == tmp_path / 'dist'

    def test_missing(self) -> None:
        """Unknown names return None."""
        assert find_package_path('nope', {}) is None


class TestDependencyEdges:
    """Tests for dependency_edges."""

    def test_runtime_only_in_set(self) -> None:
        """Only runtime dependencies inside the release set count."""
        manifests = {
            'app': Manifest.from_dict({
                'name': 'app',
                'dependencies': {'core': '^1', 'react': '^18'},
                'devDependencies': {'tooling': '^1'},
            }),
            'core': Manifest.from_dict({'name': 'core'}),
            'tooling': Manifest.from_dict({'name': 'tooling'}),
        }
        assert dependency_edges(manifests) == {'app': {'core'}, 'core': set(), 'tooling': set()}

    def test_restricted_to_names(self) -> None:
        """Names outside ``names`` are dropped on both sides."""
        manifests = {
            'app': Manifest.from_dict({'name': 'app', 'dependencies': {'core': '^1'}}),
            'core': Manifest.from_dict({'name': 'core'}),
        }
        assert dependency_edges(manifests, ['app']) == {'app': set()}

    def test_self_dependency_ignored(self) -> None:
        """A package never depends on itself."""
        manifests = {'a': Manifest.from_dict({'name': 'a', 'dependencies': {'a': '*'}})}
        assert dependency_edges(manifests) == {'a': set()}
