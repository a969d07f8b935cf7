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

"""Publish one package to one target.

Per-target pipeline::

    invoke (npm publish <tarball> | jsr publish | --dry-run variants)
      │
      ├── network error / timeout ──▶ retry (bounded, backoff)
      │
      ├── exit 0 ──────────────────▶ success (+ package URL, provenance URL)
      │
      ├── "already published" ─────▶ re-check the registry
      │       identical / unknown ──▶ success, already_published
      │       different ──────────▶ failure
      │
      └── anything else ───────────▶ failure (stderr, exit code, category)

``FileNotFoundError`` and ``PermissionError`` from launching the CLI
are not retried and propagate to the caller.

Pre-validation already ran before this is called. The "already
published" branch only fires when another process published the same
version in between.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable

from publishkit.auth import AuthConfig
from publishkit.backends._run import CommandResult, TimeoutExpired
from publishkit.backends.pm import JsrFrontEnd, NpmFrontEnd
from publishkit.classify import (
    ErrorCategory,
    classify_output,
    error_text,
    extract_jsr_url,
    extract_provenance_url,
    parse_dry_run_stats,
)
from publishkit.conflicts import ConflictCheck, ConflictVerdict, VersionConflictChecker
from publishkit.errors import PublishKitError
from publishkit.logging import get_logger
from publishkit.packer import Artifact
from publishkit.results import AlreadyPublishedReason, TargetResult
from publishkit.retry import RetriesExhaustedError, RetryPolicy, Sleep, TransientInvocationError, run_with_retry
from publishkit.targets import PublishProtocol, Target, package_view_url

logger = get_logger(__name__)


class PublishExecutor:
    """Runs publish commands for single targets.

    Args:
        npm: npm front-end.
        jsr: JSR front-end.
        checker: Conflict checker used on the race path.
        auth: Read-only registry credentials.
        policy: Retry policy for transient failures.
        sleep: Awaitable sleep used between retries.
    """

    def __init__(
        self,
        *,
        npm: NpmFrontEnd,
        jsr: JsrFrontEnd,
        checker: VersionConflictChecker,
        auth: AuthConfig | None = None,
        policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize with front-ends, checker, credentials and retry policy."""
        self._npm = npm
        self._jsr = jsr
        self._checker = checker
        self._auth = auth or AuthConfig()
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    async def publish(
        self,
        target: Target,
        package_name: str,
        version: str,
        artifact: Artifact | None,
        *,
        dry_run: bool = False,
    ) -> TargetResult:
        """Publish ``package_name@version`` to ``target``.

        Args:
            target: Destination.
            package_name: Package name.
            version: Version being published.
            artifact: Packed tarball; required for real npm publishes.
            dry_run: Use the registry's native dry run.

        Returns:
            The :class:`TargetResult`.

        Raises:
            FileNotFoundError: The CLI is not installed.
            PermissionError: The CLI cannot be executed.
        """
        log = logger.bind(package=package_name, version=version, registry=target.display_name, dry_run=dry_run)
        env = self._auth.env_for(target)

        op: Callable[[], Awaitable[CommandResult]]
        if target.protocol is PublishProtocol.JSR:
            jsr_call = self._jsr.publish_dry_run if dry_run else self._jsr.publish
            op = functools.partial(jsr_call, target.directory, env=env)
        elif dry_run:
            op = functools.partial(
                self._npm.publish_dry_run,
                target.directory,
                registry=target.registry,
                access=target.access.value,
                provenance=target.provenance,
                tag=target.tag,
                env=env,
            )
        else:
            if artifact is None:
                log.error('publish_without_artifact')
                return TargetResult(
                    target=target,
                    success=False,
                    error='Failed to create tarball with npm pack',
                    exit_code=1,
                    category=ErrorCategory.UNKNOWN,
                )
            op = functools.partial(
                self._npm.publish,
                artifact.path,
                directory=target.directory,
                registry=target.registry,
                access=target.access.value,
                provenance=target.provenance,
                tag=target.tag,
                env=env,
            )

        try:
            result, attempts = await run_with_retry(
                self._transient_guard(op, target.protocol),
                policy=self._policy,
                sleep=self._sleep,
                label=f'{package_name}@{version} → {target.display_name}',
            )
        except RetriesExhaustedError as exc:
            last = exc.last.result
            log.error('target_failed', reason='retries_exhausted', attempts=exc.attempts)
            return TargetResult(
                target=target,
                success=False,
                error=exc.message,
                exit_code=last.return_code if last else None,
                stdout=last.stdout if last else '',
                stderr=last.stderr if last else '',
                category=ErrorCategory.NETWORK,
                attempts=exc.attempts,
                dry_run=dry_run,
            )

        category = classify_output(result.return_code, result.stdout, result.stderr, target.protocol)
        if category is ErrorCategory.ALREADY_PUBLISHED:
            return await self._already_published(target, package_name, version, artifact, result, attempts, dry_run)

        stats = None
        if dry_run and target.protocol is PublishProtocol.NPM:
            stats = parse_dry_run_stats(result.stdout + result.stderr)
        if not result.ok:
            log.error('target_failed', category=category.value, exit_code=result.return_code)
            return TargetResult(
                target=target,
                success=False,
                error=error_text(result.stdout, result.stderr) or f'Publish exited with code {result.return_code}',
                exit_code=result.return_code,
                stdout=result.stdout,
                stderr=result.stderr,
                category=category,
                attempts=attempts,
                stats=stats,
                dry_run=dry_run,
            )

        if target.protocol is PublishProtocol.JSR:
            registry_url = extract_jsr_url(result.stdout)
            attestation_url = None
        else:
            registry_url = package_view_url(target.registry, package_name)
            attestation_url = extract_provenance_url(result.stdout) if target.provenance and not dry_run else None
        log.info('target_published', attempts=attempts, registry_url=registry_url, attestation_url=attestation_url)
        return TargetResult(
            target=target,
            success=True,
            exit_code=result.return_code,
            stdout=result.stdout,
            stderr=result.stderr,
            registry_url=registry_url,
            attestation_url=attestation_url,
            attempts=attempts,
            stats=stats,
            dry_run=dry_run,
        )

    def _transient_guard(
        self,
        op: Callable[[], Awaitable[CommandResult]],
        protocol: PublishProtocol,
    ) -> Callable[[], Awaitable[CommandResult]]:
        """Wrap ``op`` so network-class failures raise :class:`TransientInvocationError`."""

        async def attempt() -> CommandResult:
            try:
                result = await op()
            except TimeoutExpired as exc:
                raise TransientInvocationError(f'Publish command timed out after {exc.timeout}s') from exc
            if classify_output(result.return_code, result.stdout, result.stderr, protocol) is ErrorCategory.NETWORK:
                raise TransientInvocationError(error_text(result.stdout, result.stderr), result)
            return result

        return attempt

    async def _already_published(
        self,
        target: Target,
        package_name: str,
        version: str,
        artifact: Artifact | None,
        result: CommandResult,
        attempts: int,
        dry_run: bool,
    ) -> TargetResult:
        """Resolve the identity verdict after the CLI reported a conflict."""
        log = logger.bind(package=package_name, version=version, registry=target.display_name)
        if target.protocol is PublishProtocol.JSR:
            check = ConflictCheck(verdict=ConflictVerdict.UNKNOWN)
        else:
            log.info('version_published_concurrently')
            try:
                check = await self._checker.check(target, package_name, version, artifact)
            except PublishKitError as exc:
                log.warning('race_check_failed', error=exc.message)
                check = ConflictCheck(verdict=ConflictVerdict.UNKNOWN)
            if check.verdict is ConflictVerdict.CLEAR:
                # The CLI saw the version but the registry read did not yet.
                check = ConflictCheck(verdict=ConflictVerdict.UNKNOWN)

        reason = check.verdict.already_published_reason or AlreadyPublishedReason.UNKNOWN
        success = reason is not AlreadyPublishedReason.DIFFERENT
        error = ''
        if not success:
            error = (
                f'Version {version} already published with different content '
                f'(local: {check.local_integrity}, remote: {check.remote_integrity})'
            )
            log.error('target_content_mismatch', local=check.local_integrity, remote=check.remote_integrity)
        elif reason is AlreadyPublishedReason.UNKNOWN:
            log.warning('target_already_published_unverified')
        else:
            log.info('target_already_published_identical')

        registry_url = (
            extract_jsr_url(result.stdout)
            if target.protocol is PublishProtocol.JSR
            else package_view_url(target.registry, package_name)
        )
        return TargetResult(
            target=target,
            success=success,
            already_published=True,
            reason=reason,
            error=error,
            exit_code=result.return_code,
            stdout=result.stdout,
            stderr=result.stderr,
            registry_url=registry_url,
            category=ErrorCategory.ALREADY_PUBLISHED,
            attempts=attempts,
            local_integrity=check.local_integrity,
            remote_integrity=check.remote_integrity,
            dry_run=dry_run,
        )


__all__ = [
    'PublishExecutor',
]
