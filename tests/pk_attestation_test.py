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

"""Tests for publishkit.attestation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from publishkit import attestation as attestation_mod
from publishkit.attestation import (
    AttestationRequest,
    AttestationResult,
    Attestor,
    CommandAttestor,
    NullAttestor,
    attest_package,
    expand_template,
)
from publishkit.backends._run import CommandResult
from publishkit.logging import configure_logging
from tests._fakes import FakeAttestor

configure_logging(quiet=True)

REQUEST = AttestationRequest(package_name='@s/a', version='1.0.0', directory=Path('/ws/a'), tarball_digest='sha256:ab')


class TestExpandTemplate:
    """Tests for expand_template."""

    def test_placeholders(self) -> None:
        """Known placeholders are replaced; others are left."""
        out = expand_template('attest ${name}@${version} ${other}', {'name': 'a', 'version': '1'})
        assert out == 'attest a@1 ${other}'


class TestCommandAttestor:
    """Tests for CommandAttestor."""

    def test_is_attestor(self) -> None:
        """Both attestors satisfy the protocol."""
        assert isinstance(CommandAttestor('x'), Attestor)
        assert isinstance(NullAttestor(), Attestor)

    @pytest.mark.asyncio()
    async def test_url_from_stdout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The first URL line of stdout is the attestation URL."""
        seen: list[list[str]] = []

        def fake_run(cmd: list[str], **kwargs: Any) -> CommandResult:  # noqa: ANN401
            seen.append(cmd)
            return CommandResult(command=cmd, return_code=0, stdout='signing...\nhttps://attest.test/42\n')

        monkeypatch.setattr(attestation_mod, 'run_command', fake_run)
        res = await CommandAttestor('attest --subject ${name}@${version} --digest ${digest}').attest(REQUEST)
        assert res == AttestationResult(success=True, attestation_url='https://attest.test/42')
        assert seen == [['attest', '--subject', '@s/a@1.0.0', '--digest', 'sha256:ab']]

    @pytest.mark.asyncio()
    async def test_no_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Output without a URL is a failure."""

        def fake_run(cmd: list[str], **kwargs: Any) -> CommandResult:  # noqa: ANN401
            return CommandResult(command=cmd, return_code=0, stdout='done')

        monkeypatch.setattr(attestation_mod, 'run_command', fake_run)
        res = await CommandAttestor('attest').attest(REQUEST)
        assert not res.success
        assert res.error == 'Attestor printed no URL'

    @pytest.mark.asyncio()
    async def test_non_zero_exit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A failing command reports its stderr."""

        def fake_run(cmd: list[str], **kwargs: Any) -> CommandResult:  # noqa: ANN401
            return CommandResult(command=cmd, return_code=1, stderr='no identity token')

        monkeypatch.setattr(attestation_mod, 'run_command', fake_run)
        res = await CommandAttestor('attest').attest(REQUEST)
        assert res.error == 'no identity token'


class TestAttestPackage:
    """Tests for attest_package."""

    @pytest.mark.asyncio()
    async def test_success(self) -> None:
        """The URL is returned."""
        attestor = FakeAttestor()
        assert await attest_package(attestor, REQUEST) == 'https://attest.test/1'
        assert attestor.requests == [REQUEST]

    @pytest.mark.asyncio()
    async def test_null_attestor(self) -> None:
        """No attestor, no URL."""
        assert await attest_package(NullAttestor(), REQUEST) is None

    @pytest.mark.asyncio()
    async def test_failure_is_not_raised(self) -> None:
        """Attestor errors never fail the publish."""
        assert await attest_package(FakeAttestor(error=OSError('boom')), REQUEST) is None
        assert await attest_package(FakeAttestor(AttestationResult(success=False, error='x')), REQUEST) is None

    @pytest.mark.asyncio()
    async def test_unexpected_exception_is_not_raised(self) -> None:
        """Any exception from a custom attestor is logged, not raised."""
        attestor = FakeAttestor(error=RuntimeError('attestor bug'))
        assert await attest_package(attestor, REQUEST) is None
        assert attestor.requests == [REQUEST]
