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

"""Async publish orchestrator for npm/JSR workspace packages.

Publishes a release set to every configured target, rank by rank, with
semaphore-controlled concurrency inside a rank. All collaborators (npm
and JSR front-ends, build runner, registry clients, attestor, sleep)
are injected so the whole pipeline runs in tests without subprocesses
or network.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Plan                │ Release entries matched to directories and    │
    │                     │ targets, sorted so dependencies go first.     │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Pre-validation      │ Ask every registry about every target BEFORE  │
    │                     │ publishing anything. One bad target stops     │
    │                     │ the whole run, so no package is half-released.│
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Rank                │ Packages whose dependencies are all in lower  │
    │                     │ ranks. A rank may publish in parallel.        │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Semaphore           │ At most N packages publishing at once, and at │
    │                     │ most http_pool_size packs or registry reads.  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ No sibling cancel   │ A failing target never stops its neighbours;  │
    │                     │ every outcome is collected.                   │
    └─────────────────────┴────────────────────────────────────────────────┘

Pipeline::

    releases ──▶ plan ──▶ sort ──▶ auth ──▶ build ──▶ pack ──▶ pre-validate
                                    │         │                    │
                                    ▼         ▼                    ▼
                               unreachable  failed            any error
                                    └─────────┴──── abort ─────────┘
                                                                   │ ok
                                                                   ▼
                               aggregate ◀── attest ◀── publish (rank by rank)

Usage::

    from publishkit.publisher import publish_packages

    result = await publish_packages(entries, root=Path('.'), dry_run=True)
    print(result.success)
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

from publishkit.attestation import AttestationRequest, Attestor, NullAttestor, attest_package
from publishkit.auth import AuthConfig, Ping, RegistryAuthResult, setup_registry_auth
from publishkit.backends.pm import JsrFrontEnd, NpmFrontEnd
from publishkit.backends.pm.jsr import JsrCli
from publishkit.backends.pm.npm import NpmCli
from publishkit.backends.registry import RegistryClient
from publishkit.backends.registry.npm import NpmRegistry
from publishkit.build import BuildRunner, ScriptBuildRunner
from publishkit.classify import ErrorCategory
from publishkit.config import PublishKitConfig
from publishkit.conflicts import ConflictVerdict, VersionConflictChecker
from publishkit.errors import E, PublishKitError
from publishkit.executor import PublishExecutor
from publishkit.graph import publish_levels, sort_packages
from publishkit.logging import get_logger
from publishkit.packer import ArtifactPacker, PackOutcome
from publishkit.preflight import validate_target_directory
from publishkit.releases import ReleaseEntry
from publishkit.results import (
    AlreadyPublishedReason,
    PackagePlan,
    PackagePublishResult,
    PreValidationReport,
    PreValidationStatus,
    PreValidationTarget,
    RunResult,
    TargetResult,
    aggregate,
)
from publishkit.retry import RetryPolicy, Sleep
from publishkit.targets import PublishProtocol, Target, resolve_targets
from publishkit.workspace import (
    MANIFEST_NAME,
    Manifest,
    dependency_edges,
    discover_members,
    find_package_path,
    read_manifest,
)

logger = get_logger(__name__)

RegistryClientFactory = Callable[[Target, AuthConfig], RegistryClient]

# Artifacts are keyed by (package name, directory): targets sharing a
# directory share one tarball.
_ArtifactKey = tuple[str, Path]

_T = TypeVar('_T')


@dataclass(frozen=True)
class ReleasePlan:
    """Release entries resolved to packages and publish ranks.

    Attributes:
        packages: Packages with at least one target, in publish order.
        levels: ``packages`` grouped by dependency rank.
        cycle_info: Dependency cycle description, empty when acyclic.
        excluded: Names left out (not found, or no targets).
    """

    packages: list[PackagePlan] = field(default_factory=list)
    levels: list[list[PackagePlan]] = field(default_factory=list)
    cycle_info: str = ''
    excluded: list[str] = field(default_factory=list)

    @property
    def targets(self) -> list[Target]:
        """Every target of every planned package."""
        return [t for p in self.packages for t in p.targets]


async def plan_release(entries: Sequence[ReleaseEntry], root: Path) -> ReleasePlan:
    """Resolve release entries to directories, targets and publish order.

    Entries without a path are looked up among the workspace members.
    Packages that cannot be found, or that resolve to zero targets
    (private without ``publishConfig``), are excluded with a log line.

    Raises:
        PublishKitError: On a malformed manifest or target entry.
    """
    members: Mapping[str, Path] | None = None
    manifests: dict[str, Manifest] = {}
    plans: dict[str, PackagePlan] = {}
    excluded: list[str] = []

    for entry in entries:
        path = entry.path
        if path is None:
            if members is None:
                members = await discover_members(root)
            path = find_package_path(entry.name, members)
        if path is None:
            logger.error('package_path_not_found', package=entry.name, code=E.WORKSPACE_PACKAGE_NOT_FOUND.value)
            excluded.append(entry.name)
            continue
        if not (path / MANIFEST_NAME).is_file():
            logger.error('manifest_not_found', package=entry.name, path=str(path / MANIFEST_NAME))
            excluded.append(entry.name)
            continue

        manifest = await read_manifest(path)
        targets = resolve_targets(path, manifest)
        if not targets:
            logger.info('package_excluded', package=entry.name, reason='no publish targets')
            excluded.append(entry.name)
            continue

        manifests[entry.name] = manifest
        plans[entry.name] = PackagePlan(
            name=entry.name,
            version=entry.version,
            path=path.resolve(),
            targets=tuple(targets),
        )
        logger.info('package_planned', package=entry.name, version=entry.version, targets=len(targets))

    names = list(plans)
    edges = dependency_edges(manifests, names)
    sort = sort_packages(names, edges)
    if not sort.ok:
        logger.warning('dependency_cycle', cycle=sort.cycle_info, code=E.GRAPH_CYCLE_DETECTED.value)
    levels = publish_levels(sort.ordered, edges, ok=sort.ok)

    return ReleasePlan(
        packages=[plans[name] for name in sort.ordered],
        levels=[[plans[name] for name in level] for level in levels],
        cycle_info=sort.cycle_info,
        excluded=excluded,
    )


def _default_ping(config: PublishKitConfig) -> Ping:
    async def ping(registry: str) -> str | None:
        client = NpmRegistry(base_url=registry, timeout=config.registry_check_timeout, pool_size=1)
        return await client.ping()

    return ping


def _default_registry_factory(config: PublishKitConfig, sleep: Sleep) -> RegistryClientFactory:
    def factory(target: Target, auth: AuthConfig) -> RegistryClient:
        return NpmRegistry(
            base_url=target.registry or NpmRegistry.DEFAULT_BASE_URL,
            token=auth.token_for(target.registry),
            pool_size=config.http_pool_size,
            timeout=config.http_timeout,
            sleep=sleep,
        )

    return factory


def _unreachable_message(auth: RegistryAuthResult) -> str:
    details = '; '.join(f'{u.registry}: {u.error}' for u in auth.unreachable_registries)
    return f'Registry unreachable: {details}'


async def _gather_bounded(limit: int, awaitables: Sequence[Awaitable[_T]]) -> list[_T]:
    """Await ``awaitables`` with at most ``limit`` in flight."""
    semaphore = asyncio.Semaphore(limit)

    async def bounded(awaitable: Awaitable[_T]) -> _T:
        async with semaphore:
            return await awaitable

    return list(await asyncio.gather(*(bounded(a) for a in awaitables)))


async def _pack_all(plan: ReleasePlan, packer: ArtifactPacker, limit: int) -> dict[_ArtifactKey, PackOutcome]:
    """Pack every distinct npm target directory once."""
    keys: list[_ArtifactKey] = []
    for package in plan.packages:
        for target in package.targets:
            key = (package.name, target.directory)
            if target.protocol is PublishProtocol.NPM and key not in keys:
                keys.append(key)
    outcomes = await _gather_bounded(limit, [packer.pack(directory) for _, directory in keys])
    return dict(zip(keys, outcomes, strict=True))


async def _prevalidate_target(
    package: PackagePlan,
    target: Target,
    outcome: PackOutcome | None,
    checker: VersionConflictChecker,
) -> PreValidationTarget:
    """Decide ready/skip/error for one target."""
    base = {'package_name': package.name, 'version': package.version, 'target': target}

    directory = await validate_target_directory(target, package.name)
    if not directory.ok:
        return PreValidationTarget(
            **base,
            status=PreValidationStatus.ERROR,
            error='; '.join(directory.errors),
            warnings=tuple(directory.warnings),
        )
    warnings = tuple(directory.warnings)

    if target.protocol is PublishProtocol.JSR:
        # The JSR CLI reports conflicts itself.
        return PreValidationTarget(**base, status=PreValidationStatus.READY, warnings=warnings)

    if outcome is None or outcome.artifact is None:
        return PreValidationTarget(
            **base,
            status=PreValidationStatus.ERROR,
            error=(outcome.error if outcome else '') or 'Failed to create tarball with npm pack',
            warnings=warnings,
        )

    try:
        check = await checker.check(target, package.name, package.version, outcome.artifact)
    except PublishKitError as exc:
        return PreValidationTarget(**base, status=PreValidationStatus.ERROR, error=exc.message, warnings=warnings)

    integrity = {'local_integrity': check.local_integrity, 'remote_integrity': check.remote_integrity}
    if check.verdict is ConflictVerdict.CLEAR:
        return PreValidationTarget(**base, status=PreValidationStatus.READY, warnings=warnings)
    if check.verdict is ConflictVerdict.DIFFERENT:
        return PreValidationTarget(
            **base,
            status=PreValidationStatus.ERROR,
            error=f'Content mismatch: local={check.local_integrity}, remote={check.remote_integrity}',
            reason=AlreadyPublishedReason.DIFFERENT,
            warnings=warnings,
            **integrity,
        )
    return PreValidationTarget(
        **base,
        status=PreValidationStatus.SKIP,
        reason=check.verdict.already_published_reason,
        warnings=warnings,
        **integrity,
    )


async def _prevalidate(
    plan: ReleasePlan,
    artifacts: Mapping[_ArtifactKey, PackOutcome],
    checker: VersionConflictChecker,
    limit: int,
) -> PreValidationReport:
    """Pre-validate every target of every package."""
    pairs = [(package, target) for package in plan.packages for target in package.targets]
    results = await _gather_bounded(
        limit,
        [
            _prevalidate_target(package, target, artifacts.get((package.name, target.directory)), checker)
            for package, target in pairs
        ],
    )
    report = PreValidationReport(targets=list(results))
    for item in report.targets:
        log = logger.bind(package=item.package_name, version=item.version, registry=item.registry_name)
        for warning in item.warnings:
            log.warning('prevalidation_warning', warning=warning)
        if item.status is PreValidationStatus.ERROR:
            log.error('prevalidation_error', error=item.error, code=E.PREVALIDATION_FAILED.value)
        elif item.status is PreValidationStatus.SKIP:
            log.info('prevalidation_skip', reason=item.reason.value if item.reason else None)
    logger.info(
        'prevalidation_done',
        ready=len(report.ready),
        skipped=len(report.skipped),
        errors=len(report.errors),
    )
    return report


def _skipped_result(item: PreValidationTarget, dry_run: bool) -> TargetResult:
    return TargetResult(
        target=item.target,
        success=True,
        already_published=True,
        reason=item.reason or AlreadyPublishedReason.UNKNOWN,
        category=ErrorCategory.ALREADY_PUBLISHED,
        local_integrity=item.local_integrity,
        remote_integrity=item.remote_integrity,
        dry_run=dry_run,
    )


async def _publish_one(
    package: PackagePlan,
    *,
    executor: PublishExecutor,
    skips: Mapping[tuple[str, Target], PreValidationTarget],
    artifacts: Mapping[_ArtifactKey, PackOutcome],
    attestor: Attestor,
    semaphore: asyncio.Semaphore,
    dry_run: bool,
) -> PackagePublishResult:
    """Publish one package to each of its targets, then attest it."""
    async with semaphore:
        log = logger.bind(package=package.name, version=package.version)
        log.info('package_publish_start', targets=len(package.targets))
        results: list[TargetResult] = []
        for target in package.targets:
            skip = skips.get((package.name, target))
            if skip is not None:
                log.info('target_skipped', registry=target.display_name, reason=skip.reason)
                results.append(_skipped_result(skip, dry_run))
                continue
            outcome = artifacts.get((package.name, target.directory))
            try:
                result = await executor.publish(
                    target,
                    package.name,
                    package.version,
                    outcome.artifact if outcome else None,
                    dry_run=dry_run,
                )
            except Exception as exc:  # noqa: BLE001 - one target never stops its siblings
                log.error('target_error', registry=target.display_name, error=str(exc))
                result = TargetResult(
                    target=target,
                    success=False,
                    error=str(exc) or type(exc).__name__,
                    exit_code=1,
                    category=ErrorCategory.UNKNOWN,
                    dry_run=dry_run,
                )
            results.append(result)

        digest = None
        for target in package.targets:
            outcome = artifacts.get((package.name, target.directory))
            if outcome is not None and outcome.artifact is not None:
                digest = outcome.artifact.digest
                break
        published = PackagePublishResult(
            name=package.name,
            version=package.version,
            targets=results,
            tarball_digest=digest,
        )

        attestation_url = None
        has_provenance = any(r.attestation_url for r in results)
        if published.success and published.newly_published and not has_provenance and not dry_run:
            directory = next(r.target.directory for r in results if r.success)
            attestation_url = await attest_package(
                attestor,
                AttestationRequest(
                    package_name=package.name,
                    version=package.version,
                    directory=directory,
                    tarball_digest=digest,
                ),
            )
        if published.success:
            log.info('package_published', attestation_url=attestation_url)
        else:
            log.error('package_failed', failed=[r.target.display_name for r in results if not r.success])
        return PackagePublishResult(
            name=published.name,
            version=published.version,
            targets=published.targets,
            attestation_url=attestation_url,
            tarball_digest=digest,
        )


def _cleanup(artifacts: Mapping[_ArtifactKey, PackOutcome]) -> None:
    for outcome in artifacts.values():
        if outcome.artifact is not None:
            outcome.artifact.path.unlink(missing_ok=True)


async def publish_packages(
    entries: Sequence[ReleaseEntry],
    *,
    root: Path,
    config: PublishKitConfig | None = None,
    dry_run: bool = False,
    npm: NpmFrontEnd | None = None,
    jsr: JsrFrontEnd | None = None,
    builder: BuildRunner | None = None,
    attestor: Attestor | None = None,
    registry_factory: RegistryClientFactory | None = None,
    ping: Ping | None = None,
    environ: Mapping[str, str] | None = None,
    sleep: Sleep = asyncio.sleep,
) -> RunResult:
    """Publish a release set to all of its targets.

    Args:
        entries: Packages and versions to publish.
        root: Workspace root.
        config: Settings; defaults when ``None``.
        dry_run: Use each registry's native dry run. Build, pack and
            pre-validation still run.
        npm: npm front-end (defaults to :class:`NpmCli`).
        jsr: JSR front-end (defaults to :class:`JsrCli`).
        builder: Shared build runner (defaults to the configured script).
        attestor: Post-publish attestor (defaults to :class:`NullAttestor`).
        registry_factory: Registry client for an npm target.
        ping: Reachability check for custom registries.
        environ: Where ``tokenEnv`` values are read (defaults to ``os.environ``).
        sleep: Awaitable sleep for retry backoff.

    Returns:
        The :class:`RunResult`. Aborted runs list every planned package
        under ``not_attempted``.

    Raises:
        PublishKitError: On malformed manifests or target configuration.
    """
    config = config or PublishKitConfig()
    npm = npm or NpmCli(config.package_manager)
    jsr = jsr or JsrCli(config.package_manager)
    builder = builder or ScriptBuildRunner(root, config.package_manager, config.build_script)
    attestor = attestor or NullAttestor()
    registry_factory = registry_factory or _default_registry_factory(config, sleep)
    environ = os.environ if environ is None else environ

    if not entries:
        logger.info('nothing_to_publish')
        return RunResult(dry_run=dry_run)

    plan = await plan_release(entries, root)
    if not plan.packages:
        logger.info('nothing_to_publish', excluded=plan.excluded)
        return RunResult(cycle_info=plan.cycle_info, dry_run=dry_run)

    auth_result = await setup_registry_auth(plan.targets, environ=environ, ping=ping or _default_ping(config))
    if auth_result.fatal:
        message = _unreachable_message(auth_result)
        logger.error('run_aborted', reason=message, code=E.AUTH_REGISTRY_UNREACHABLE.value)
        return RunResult.registry_unreachable(plan.packages, message, auth=auth_result, dry_run=dry_run)
    auth = auth_result.auth

    build = await builder.run()
    if not build.ok:
        logger.error('run_aborted', reason=build.error, code=E.BUILD_FAILED.value)
        return RunResult.build_failed(plan.packages, build.error, build.stdout, auth=auth_result, dry_run=dry_run)

    checker = VersionConflictChecker(lambda target: registry_factory(target, auth))
    artifacts = await _pack_all(plan, ArtifactPacker(npm), config.http_pool_size)
    try:
        report = await _prevalidate(plan, artifacts, checker, config.http_pool_size)
        if not report.ok:
            logger.error('run_aborted', reason='pre-validation failed', code=E.PREVALIDATION_FAILED.value)
            return RunResult.pre_validation_failed(plan.packages, report, auth=auth_result, dry_run=dry_run)

        executor = PublishExecutor(
            npm=npm,
            jsr=jsr,
            checker=checker,
            auth=auth,
            policy=RetryPolicy(max_attempts=config.max_attempts, delay=config.retry_delay),
            sleep=sleep,
        )
        skips = {(item.package_name, item.target): item for item in report.skipped}
        semaphore = asyncio.Semaphore(config.concurrency)

        packages: list[PackagePublishResult] = []
        for index, level in enumerate(plan.levels):
            logger.info('level_start', level=index, packages=[p.name for p in level], concurrency=config.concurrency)
            done = await asyncio.gather(
                *(
                    _publish_one(
                        package,
                        executor=executor,
                        skips=skips,
                        artifacts=artifacts,
                        attestor=attestor,
                        semaphore=semaphore,
                        dry_run=dry_run,
                    )
                    for package in level
                )
            )
            packages.extend(done)
            failed = [p.name for p in done if not p.success]
            if failed:
                logger.error('level_failed', level=index, failed=failed)
            else:
                logger.info('level_complete', level=index)
    finally:
        _cleanup(artifacts)

    result = aggregate(packages, auth=auth_result, cycle_info=plan.cycle_info, dry_run=dry_run)
    logger.info(
        'run_complete',
        success=result.success,
        packages=f'{result.successful_packages}/{result.total_packages}',
        targets=f'{result.successful_targets}/{result.total_targets}',
    )
    return result


__all__ = [
    'RegistryClientFactory',
    'ReleasePlan',
    'plan_release',
    'publish_packages',
]
