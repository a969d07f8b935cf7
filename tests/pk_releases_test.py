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

"""Tests for publishkit.releases."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from publishkit import releases as releases_mod
from publishkit.backends._run import CommandResult
from publishkit.errors import E, PublishKitError
from publishkit.logging import configure_logging
from publishkit.releases import (
    ChangesetStatusSource,
    ReleaseEntry,
    ReleaseFileSource,
    ReleaseSource,
    changeset_status_command,
    load_release_list,
    parse_release_list,
)

configure_logging(quiet=True)


class TestParseReleaseList:
    """Tests for parse_release_list."""

    def test_bare_list(self) -> None:
        """A list of entries."""
        entries = parse_release_list([{'name': '@s/a', 'version': '1.0.0', 'type': 'minor'}])
        assert entries == [ReleaseEntry(name='@s/a', version='1.0.0', type='minor')]

    def test_changeset_shape(self) -> None:
        """``{"releases": [...]}`` with ``newVersion`` keys."""
        entries = parse_release_list({'releases': [{'name': 'a', 'newVersion': '2.0.0', 'type': 'major'}]})
        assert entries[0].version == '2.0.0'

    def test_relative_path(self, tmp_path: Path) -> None:
        """Paths resolve against the given base."""
        entries = parse_release_list([{'name': 'a', 'version': '1.0.0', 'path': 'packages/a'}], base=tmp_path)
        assert entries[0].path == tmp_path / 'packages/a'

    @pytest.mark.parametrize(
        'data',
        [
            'nope',
            {'releases': 'nope'},
            ['not-an-object'],
            [{'name': 'a'}],
            [{'version': '1.0.0'}],
        ],
    )
    def test_invalid(self, data: Any) -> None:  # noqa: ANN401
        """Malformed lists and entries are parse errors."""
        with pytest.raises(PublishKitError) as exc_info:
            parse_release_list(data)
        assert exc_info.value.code == E.RELEASES_PARSE_ERROR


class TestLoadReleaseList:
    """Tests for load_release_list."""

    @pytest.mark.asyncio()
    async def test_load(self, tmp_path: Path) -> None:
        """Entries are read and paths resolved next to the file."""
        path = tmp_path / 'releases.json'
        path.write_text(json.dumps([{'name': 'a', 'version': '1.0.0', 'path': 'pkgs/a'}]), encoding='utf-8')
        entries = await load_release_list(path)
        assert entries[0].path == tmp_path.resolve() / 'pkgs/a'

    @pytest.mark.asyncio()
    async def test_not_json(self, tmp_path: Path) -> None:
        """Invalid JSON is a parse error."""
        path = tmp_path / 'releases.json'
        path.write_text('name: a', encoding='utf-8')
        with pytest.raises(PublishKitError) as exc_info:
            await load_release_list(path)
        assert exc_info.value.code == E.RELEASES_PARSE_ERROR


class TestChangesetStatusCommand:
    """Tests for changeset_status_command."""

    def test_per_package_manager(self) -> None:
        """npm needs ``run`` and ``--``."""
        assert changeset_status_command('pnpm', 'o.json') == ['pnpm', 'changeset', 'status', '--output=o.json']
        assert changeset_status_command('npm', 'o.json') == [
            'npm',
            'run',
            'changeset',
            'status',
            '--',
            '--output=o.json',
        ]


def _fake_status(status: dict[str, Any] | None, return_code: int = 0, stderr: str = ''):  # noqa: ANN202, ANN401
    """A run_command stand-in that writes ``status`` to the --output file."""

    def fake_run(cmd: list[str], *, cwd: Path, **kwargs: Any) -> CommandResult:  # noqa: ANN401
        output = next(arg for arg in cmd if arg.startswith('--output='))
        if status is not None:
            (cwd / output.removeprefix('--output=')).write_text(json.dumps(status), encoding='utf-8')
        return CommandResult(command=cmd, return_code=return_code, stderr=stderr)

    return fake_run


class TestChangesetStatusSource:
    """Tests for ChangesetStatusSource."""

    def test_is_release_source(self, tmp_path: Path) -> None:
        """Both sources satisfy the protocol."""
        assert isinstance(ChangesetStatusSource(tmp_path), ReleaseSource)
        assert isinstance(ReleaseFileSource(tmp_path / 'releases.json'), ReleaseSource)

    @pytest.mark.asyncio()
    async def test_releases(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Releases are read and the status file is removed."""
        status = {'releases': [{'name': '@s/a', 'newVersion': '1.1.0', 'type': 'minor'}], 'changesets': []}
        monkeypatch.setattr(releases_mod, 'run_command', _fake_status(status))
        entries = await ChangesetStatusSource(tmp_path, 'pnpm').releases()
        assert entries == [ReleaseEntry(name='@s/a', version='1.1.0', type='minor')]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio()
    async def test_no_changesets(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Consumed changesets are an empty release set."""
        fake = _fake_status(None, return_code=1, stderr='🦋 error No changesets present')
        monkeypatch.setattr(releases_mod, 'run_command', fake)
        assert await ChangesetStatusSource(tmp_path).releases() == []

    @pytest.mark.asyncio()
    async def test_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Any other failure is an error."""
        monkeypatch.setattr(releases_mod, 'run_command', _fake_status(None, return_code=1, stderr='boom'))
        with pytest.raises(PublishKitError) as exc_info:
            await ChangesetStatusSource(tmp_path).releases()
        assert exc_info.value.code == E.RELEASES_STATUS_FAILED


class TestReleaseFileSource:
    """Tests for ReleaseFileSource."""

    @pytest.mark.asyncio()
    async def test_reads_file(self, tmp_path: Path) -> None:
        """The file is read on each call."""
        path = tmp_path / 'releases.json'
        path.write_text(json.dumps({'releases': [{'name': 'a', 'version': '1.0.0'}]}), encoding='utf-8')
        source = ReleaseFileSource(path)
        assert await source.releases() == [ReleaseEntry('a', '1.0.0')]

    @pytest.mark.asyncio()
    async def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is reported, not swallowed."""
        with pytest.raises(PublishKitError) as exc_info:
            await ReleaseFileSource(tmp_path / 'nope.json').releases()
        assert exc_info.value.code == E.WORKSPACE_PARSE_ERROR
