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

"""Tests for publishkit.executor."""

from __future__ import annotations

from pathlib import Path

import pytest
from publishkit.auth import AuthConfig
from publishkit.backends._run import TimeoutExpired
from publishkit.classify import ErrorCategory
from publishkit.conflicts import VersionConflictChecker
from publishkit.errors import E, PublishKitError
from publishkit.executor import PublishExecutor
from publishkit.logging import configure_logging
from publishkit.packer import Artifact, fingerprint
from publishkit.results import AlreadyPublishedReason
from publishkit.retry import RetryPolicy
from publishkit.targets import NPM_REGISTRY, PublishProtocol, Target
from tests._fakes import FakeJsrCli, FakeNpmCli, FakeRegistry, RecordingSleep, result

configure_logging(quiet=True)

CONTENT = b'local-tarball'
CUSTOM_REGISTRY = 'https://registry.example.com/'
ALREADY = 'npm ERR! You cannot publish over the previously published versions: 1.0.0.'


def _artifact() -> Artifact:
    digest, sha1, integrity = fingerprint(CONTENT)
    return Artifact(path=Path('/tmp/a-1.0.0.tgz'), digest=digest, filename='a-1.0.0.tgz', shasum=sha1, integrity=integrity)


def _npm_target(registry: str = NPM_REGISTRY, *, provenance: bool = False) -> Target:
    return Target(protocol=PublishProtocol.NPM, registry=registry, directory=Path('/tmp/pkg'), provenance=provenance)


def _jsr_target() -> Target:
    return Target(protocol=PublishProtocol.JSR, registry=None, directory=Path('/tmp/pkg'))


def _executor(
    npm: FakeNpmCli | None = None,
    jsr: FakeJsrCli | None = None,
    registry: FakeRegistry | None = None,
    *,
    auth: AuthConfig | None = None,
    sleep: RecordingSleep | None = None,
) -> PublishExecutor:
    reg = registry or FakeRegistry()
    return PublishExecutor(
        npm=npm or FakeNpmCli(),
        jsr=jsr or FakeJsrCli(),
        checker=VersionConflictChecker(lambda _t: reg),
        auth=auth,
        policy=RetryPolicy(max_attempts=2, delay=1),
        sleep=sleep or RecordingSleep(),
    )


class TestNpmPublish:
    """Real npm publishes."""

    @pytest.mark.asyncio()
    async def test_success(self) -> None:
        """The tarball is published and URLs are extracted."""
        npm = FakeNpmCli(publish=[result(stdout='Provenance statement published to https://search.sigstore.dev/x\n')])
        res = await _executor(npm).publish(_npm_target(provenance=True), '@s/a', '1.0.0', _artifact())
        assert res.success
        assert res.attempts == 1
        assert res.registry_url == 'https://www.npmjs.com/package/@s/a'
        assert res.attestation_url == 'https://search.sigstore.dev/x'
        call = npm.ops('publish')[0]
        assert call['tarball'] == Path('/tmp/a-1.0.0.tgz')
        assert call['provenance'] is True
        assert call['access'] == 'restricted'

    @pytest.mark.asyncio()
    async def test_no_artifact(self) -> None:
        """A real npm publish needs a tarball."""
        npm = FakeNpmCli()
        res = await _executor(npm).publish(_npm_target(), '@s/a', '1.0.0', None)
        assert not res.success
        assert res.error == 'Failed to create tarball with npm pack'
        assert npm.ops('publish') == []

    @pytest.mark.asyncio()
    async def test_credentials_passed_per_call(self) -> None:
        """Custom registry credentials become per-call env overrides."""
        npm = FakeNpmCli()
        auth = AuthConfig(credentials={CUSTOM_REGISTRY: 'secret'})
        await _executor(npm, auth=auth).publish(_npm_target(CUSTOM_REGISTRY), 'a', '1.0.0', _artifact())
        env = npm.ops('publish')[0]['env']
        assert env == {'npm_config_//registry.example.com/:_authToken': 'secret'}

    @pytest.mark.asyncio()
    async def test_auth_failure_not_retried(self) -> None:
        """Registry rejections are answers, not transient errors."""
        npm = FakeNpmCli(publish=[result(1, stderr='npm ERR! code E401 Unable to authenticate')])
        sleep = RecordingSleep()
        res = await _executor(npm, sleep=sleep).publish(_npm_target(), 'a', '1.0.0', _artifact())
        assert not res.success
        assert res.category is ErrorCategory.AUTH
        assert res.exit_code == 1
        assert 'E401' in res.error
        assert sleep.delays == []
        assert len(npm.ops('publish')) == 1


class TestRetries:
    """Transient failures."""

    @pytest.mark.asyncio()
    async def test_network_then_success(self) -> None:
        """One network failure is retried after a backoff."""
        npm = FakeNpmCli(publish=[result(1, stderr='npm ERR! code ECONNRESET'), result()])
        sleep = RecordingSleep()
        res = await _executor(npm, sleep=sleep).publish(_npm_target(), 'a', '1.0.0', _artifact())
        assert res.success
        assert res.attempts == 2
        assert sleep.delays == [1]

    @pytest.mark.asyncio()
    async def test_timeout_is_transient(self) -> None:
        """A command timeout is retried."""
        npm = FakeNpmCli(publish=[TimeoutExpired(['npm', 'publish'], 600), result()])
        res = await _executor(npm).publish(_npm_target(), 'a', '1.0.0', _artifact())
        assert res.success
        assert res.attempts == 2

    @pytest.mark.asyncio()
    async def test_exhausted(self) -> None:
        """Persistent network failures end as a network failure."""
        npm = FakeNpmCli(publish=[result(1, stderr='npm ERR! code ETIMEDOUT')])
        res = await _executor(npm).publish(_npm_target(), 'a', '1.0.0', _artifact())
        assert not res.success
        assert res.category is ErrorCategory.NETWORK
        assert res.attempts == 2
        assert res.exit_code == 1
        assert 'Gave up after 2 attempt(s)' in res.error

    @pytest.mark.asyncio()
    async def test_launch_failure_propagates(self) -> None:
        """A missing CLI is not retried and not swallowed."""
        npm = FakeNpmCli(publish=[FileNotFoundError('npm')])
        with pytest.raises(FileNotFoundError):
            await _executor(npm).publish(_npm_target(), 'a', '1.0.0', _artifact())


class TestAlreadyPublishedRace:
    """The CLI reports a conflict that pre-validation did not see."""

    @pytest.mark.asyncio()
    async def test_identical(self) -> None:
        """Same bytes on the registry is success."""
        npm = FakeNpmCli(publish=[result(1, stderr=ALREADY)])
        registry = FakeRegistry(published={('a', '1.0.0'): CONTENT})
        res = await _executor(npm, registry=registry).publish(_npm_target(), 'a', '1.0.0', _artifact())
        assert res.success
        assert res.already_published
        assert res.reason is AlreadyPublishedReason.IDENTICAL

    @pytest.mark.asyncio()
    async def test_different(self) -> None:
        """Different bytes on the registry is failure."""
        npm = FakeNpmCli(publish=[result(1, stderr=ALREADY)])
        registry = FakeRegistry(published={('a', '1.0.0'): b'someone-else'})
        res = await _executor(npm, registry=registry).publish(_npm_target(), 'a', '1.0.0', _artifact())
        assert not res.success
        assert res.reason is AlreadyPublishedReason.DIFFERENT
        assert 'different content' in res.error

    @pytest.mark.asyncio()
    async def test_registry_not_yet_updated(self) -> None:
        """A clear registry read after the conflict is unknown, not clear."""
        npm = FakeNpmCli(publish=[result(1, stderr=ALREADY)])
        res = await _executor(npm).publish(_npm_target(), 'a', '1.0.0', _artifact())
        assert res.success
        assert res.reason is AlreadyPublishedReason.UNKNOWN

    @pytest.mark.asyncio()
    async def test_registry_error(self) -> None:
        """A registry error on the race path is unknown."""
        npm = FakeNpmCli(publish=[result(1, stderr=ALREADY)])
        registry = FakeRegistry(error=PublishKitError(E.PREVALIDATION_REGISTRY_ERROR, 'boom'))
        res = await _executor(npm, registry=registry).publish(_npm_target(), 'a', '1.0.0', _artifact())
        assert res.success
        assert res.reason is AlreadyPublishedReason.UNKNOWN


class TestJsr:
    """JSR publishes."""

    @pytest.mark.asyncio()
    async def test_success(self) -> None:
        """The jsr.io URL is taken from stdout."""
        jsr = FakeJsrCli(publish=[result(stdout='Published @s/a@1.0.0\nVisit https://jsr.io/@s/a@1.0.0\n')])
        res = await _executor(jsr=jsr).publish(_jsr_target(), '@s/a', '1.0.0', None)
        assert res.success
        assert res.registry_url == 'https://jsr.io/@s/a@1.0.0'
        assert jsr.calls == [{'op': 'publish', 'directory': Path('/tmp/pkg')}]

    @pytest.mark.asyncio()
    async def test_already_published(self) -> None:
        """JSR conflicts cannot be verified and count as unknown."""
        jsr = FakeJsrCli(publish=[result(1, stderr='error: Version 1.0.0 is already published')])
        res = await _executor(jsr=jsr).publish(_jsr_target(), '@s/a', '1.0.0', None)
        assert res.success
        assert res.already_published
        assert res.reason is AlreadyPublishedReason.UNKNOWN


class TestDryRun:
    """Native dry runs."""

    @pytest.mark.asyncio()
    async def test_npm_dry_run(self) -> None:
        """npm dry runs use the directory and parse stats."""
        npm = FakeNpmCli(dry_run=[result(stderr='npm notice package size: 1.0 kB\nnpm notice total files: 3\n')])
        res = await _executor(npm).publish(_npm_target(), 'a', '1.0.0', None, dry_run=True)
        assert res.success
        assert res.dry_run
        assert res.stats is not None
        assert res.stats.total_files == 3
        assert npm.ops('publish') == []
        assert npm.ops('publish_dry_run')[0]['directory'] == Path('/tmp/pkg')

    @pytest.mark.asyncio()
    async def test_jsr_dry_run(self) -> None:
        """JSR dry runs call the dry-run command."""
        jsr = FakeJsrCli()
        res = await _executor(jsr=jsr).publish(_jsr_target(), '@s/a', '1.0.0', None, dry_run=True)
        assert res.success
        assert jsr.calls[0]['op'] == 'publish_dry_run'
