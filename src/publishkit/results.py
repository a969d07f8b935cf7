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

"""Publish outcomes and their aggregation.

Result hierarchy::

    RunResult
    ├── packages: PackagePublishResult[]     attempted packages
    │     └── targets: TargetResult[]
    ├── not_attempted: PackagePlan[]         planned, never published (abort)
    ├── abort_reason / abort_message         why nothing was published
    ├── build_error / build_output           build failure only
    ├── pre_validation: PreValidationReport  only when pre-validation failed
    └── auth: RegistryAuthResult

Every count on :class:`RunResult` is computed from these lists; nothing
is tracked separately, so counts can never drift from the results.

Success rules::

    already published, identical → success
    already published, unknown   → success (warned)
    already published, different → failure, and the run fails
    run success ⇔ every target succeeded and nothing was left unattempted
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from publishkit.classify import DryRunStats, ErrorCategory
from publishkit.targets import Target, registry_display_name

if TYPE_CHECKING:
    from publishkit.auth import RegistryAuthResult


class AlreadyPublishedReason(str, Enum):
    """Why a target counted as already published."""

    IDENTICAL = 'identical'
    DIFFERENT = 'different'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class TargetResult:
    """Outcome of publishing one package to one target.

    Attributes:
        target: The target.
        success: Whether this target is in the desired state.
        already_published: The version was already on the registry.
        reason: Identity verdict when ``already_published``.
        error: Failure message (stderr preferred over stdout).
        exit_code: Exit code of the last publish invocation.
        stdout: Captured stdout of the last invocation.
        stderr: Captured stderr of the last invocation.
        registry_url: Where to view the published package.
        attestation_url: Provenance transparency log entry, if any.
        category: Classification of the command output.
        attempts: Publish invocations made (0 when none was needed).
        local_integrity: Local artifact fingerprint used for comparison.
        remote_integrity: Registry fingerprint used for comparison.
        stats: Package statistics from a dry run.
        dry_run: Whether this came from a dry run.
    """

    target: Target
    success: bool
    already_published: bool = False
    reason: AlreadyPublishedReason | None = None
    error: str = ''
    exit_code: int | None = None
    stdout: str = ''
    stderr: str = ''
    registry_url: str | None = None
    attestation_url: str | None = None
    category: ErrorCategory = ErrorCategory.NONE
    attempts: int = 0
    local_integrity: str | None = None
    remote_integrity: str | None = None
    stats: DryRunStats | None = None
    dry_run: bool = False

    def __post_init__(self) -> None:
        """Enforce the link between ``reason`` and ``success``."""
        if self.reason is not None and not self.already_published:
            raise ValueError('reason requires already_published')
        if self.reason is AlreadyPublishedReason.DIFFERENT and self.success:
            raise ValueError('a target published with different content cannot succeed')
        if self.reason in {AlreadyPublishedReason.IDENTICAL, AlreadyPublishedReason.UNKNOWN} and not self.success:
            raise ValueError(f'a target already published as {self.reason.value} must succeed')

    @property
    def registry_name(self) -> str:
        """Display name of the target's registry."""
        return registry_display_name(self.target.registry)

    def to_dict(self) -> dict[str, Any]:  # noqa: ANN401 - JSON-ready values
        """Return a JSON-serializable view."""
        data: dict[str, Any] = {  # noqa: ANN401
            'target': self.target.to_dict(),
            'success': self.success,
            'already_published': self.already_published,
            'already_published_reason': self.reason.value if self.reason else None,
            'error': self.error or None,
            'exit_code': self.exit_code,
            'registry_url': self.registry_url,
            'attestation_url': self.attestation_url,
            'category': self.category.value,
            'attempts': self.attempts,
            'local_integrity': self.local_integrity,
            'remote_integrity': self.remote_integrity,
        }
        if self.stats is not None:
            data['stats'] = {
                'package_size': self.stats.package_size,
                'unpacked_size': self.stats.unpacked_size,
                'total_files': self.stats.total_files,
            }
        return data


@dataclass(frozen=True)
class PackagePlan:
    """A release-set package with its resolved targets.

    Attributes:
        name: Package name.
        version: Version to publish.
        path: Package root.
        targets: Resolved targets (never empty).
    """

    name: str
    version: str
    path: Path
    targets: tuple[Target, ...]


@dataclass(frozen=True)
class PackagePublishResult:
    """Outcome for one package across all its targets."""

    name: str
    version: str
    targets: list[TargetResult] = field(default_factory=list)
    attestation_url: str | None = None
    tarball_digest: str | None = None

    @property
    def success(self) -> bool:
        """Whether every target succeeded."""
        return all(t.success for t in self.targets)

    @property
    def newly_published(self) -> bool:
        """Whether at least one target was published by this run."""
        return any(t.success and not t.already_published for t in self.targets)

    def to_dict(self) -> dict[str, Any]:  # noqa: ANN401 - JSON-ready values
        """Return a JSON-serializable view."""
        return {
            'name': self.name,
            'version': self.version,
            'success': self.success,
            'attestation_url': self.attestation_url,
            'tarball_digest': self.tarball_digest,
            'targets': [t.to_dict() for t in self.targets],
        }


class AbortReason(str, Enum):
    """Why a run stopped before any publish call."""

    BUILD = 'build'
    REGISTRY_UNREACHABLE = 'registry_unreachable'
    PRE_VALIDATION = 'pre_validation'


class PreValidationStatus(str, Enum):
    """Pre-validation verdict for one target."""

    READY = 'ready'
    SKIP = 'skip'
    ERROR = 'error'


@dataclass(frozen=True)
class PreValidationTarget:
    """Pre-validation outcome for one (package, target) pair."""

    package_name: str
    version: str
    target: Target
    status: PreValidationStatus
    error: str = ''
    reason: AlreadyPublishedReason | None = None
    local_integrity: str | None = None
    remote_integrity: str | None = None
    warnings: tuple[str, ...] = ()

    @property
    def registry_name(self) -> str:
        """Display name of the target's registry."""
        return registry_display_name(self.target.registry)

    def to_dict(self) -> dict[str, Any]:  # noqa: ANN401 - JSON-ready values
        """Return a JSON-serializable view."""
        return {
            'package_name': self.package_name,
            'version': self.version,
            'registry_name': self.registry_name,
            'registry_url': self.target.registry,
            'protocol': self.target.protocol.value,
            'status': self.status.value,
            'error': self.error or None,
            'local_integrity': self.local_integrity,
            'remote_integrity': self.remote_integrity,
        }


@dataclass(frozen=True)
class PreValidationReport:
    """Every target's pre-validation outcome."""

    targets: list[PreValidationTarget] = field(default_factory=list)

    def _with(self, status: PreValidationStatus) -> list[PreValidationTarget]:
        return [t for t in self.targets if t.status is status]

    @property
    def ready(self) -> list[PreValidationTarget]:
        """Targets to publish."""
        return self._with(PreValidationStatus.READY)

    @property
    def skipped(self) -> list[PreValidationTarget]:
        """Targets already published with acceptable content."""
        return self._with(PreValidationStatus.SKIP)

    @property
    def errors(self) -> list[PreValidationTarget]:
        """Targets that block the run."""
        return self._with(PreValidationStatus.ERROR)

    @property
    def ok(self) -> bool:
        """Whether the run may publish."""
        return not self.errors

    def to_dict(self) -> dict[str, Any]:  # noqa: ANN401 - JSON-ready values
        """Return a JSON-serializable view."""
        return {
            'targets': [t.to_dict() for t in self.targets],
            'ready': len(self.ready),
            'skipped': len(self.skipped),
            'errors': len(self.errors),
        }


@dataclass(frozen=True)
class RunResult:
    """Outcome of a whole publish run.

    Attributes:
        packages: Results for every package that reached publishing.
        not_attempted: Planned packages that never reached publishing
            because the run was aborted.
        abort_reason: Why the run stopped before publishing, if it did.
        abort_message: Human-readable abort description.
        build_error: Build failure reason; set only when the build failed.
        build_output: Build stdout, when the build failed.
        pre_validation: Pre-validation report, when it failed.
        auth: Registry auth setup outcome, when it ran.
        cycle_info: Dependency cycle warning, if any.
        dry_run: Whether this was a dry run.
    """

    packages: list[PackagePublishResult] = field(default_factory=list)
    not_attempted: list[PackagePlan] = field(default_factory=list)
    abort_reason: AbortReason | None = None
    abort_message: str | None = None
    build_error: str | None = None
    build_output: str | None = None
    pre_validation: PreValidationReport | None = None
    auth: RegistryAuthResult | None = None
    cycle_info: str = ''
    dry_run: bool = False

    @property
    def success(self) -> bool:
        """Whether every target of every planned package succeeded."""
        if self.abort_reason is not None or self.not_attempted:
            return False
        return all(p.success for p in self.packages)

    @property
    def total_packages(self) -> int:
        """Packages planned for this run."""
        return len(self.packages) + len(self.not_attempted)

    @property
    def successful_packages(self) -> int:
        """Packages whose targets all succeeded."""
        return sum(1 for p in self.packages if p.success)

    @property
    def total_targets(self) -> int:
        """Targets planned for this run."""
        return sum(len(p.targets) for p in self.packages) + sum(len(p.targets) for p in self.not_attempted)

    @property
    def successful_targets(self) -> int:
        """Targets that ended in the desired state."""
        return sum(1 for p in self.packages for t in p.targets if t.success)

    @classmethod
    def build_failed(
        cls,
        plans: list[PackagePlan],
        error: str,
        output: str = '',
        *,
        auth: RegistryAuthResult | None = None,
        dry_run: bool = False,
    ) -> RunResult:
        """A run aborted because the shared build failed."""
        return cls(
            not_attempted=list(plans),
            abort_reason=AbortReason.BUILD,
            abort_message=error,
            build_error=error,
            build_output=output,
            auth=auth,
            dry_run=dry_run,
        )

    @classmethod
    def registry_unreachable(
        cls,
        plans: list[PackagePlan],
        message: str,
        *,
        auth: RegistryAuthResult | None = None,
        dry_run: bool = False,
    ) -> RunResult:
        """A run aborted because a custom registry did not answer."""
        return cls(
            not_attempted=list(plans),
            abort_reason=AbortReason.REGISTRY_UNREACHABLE,
            abort_message=message,
            auth=auth,
            dry_run=dry_run,
        )

    @classmethod
    def pre_validation_failed(
        cls,
        plans: list[PackagePlan],
        report: PreValidationReport,
        *,
        auth: RegistryAuthResult | None = None,
        dry_run: bool = False,
    ) -> RunResult:
        """A run aborted because at least one target failed pre-validation."""
        return cls(
            not_attempted=list(plans),
            abort_reason=AbortReason.PRE_VALIDATION,
            abort_message=f'Pre-validation failed: {len(report.errors)} target(s) have errors',
            pre_validation=report,
            auth=auth,
            dry_run=dry_run,
        )

    def to_dict(self) -> dict[str, Any]:  # noqa: ANN401 - JSON-ready values
        """Return a JSON-serializable view."""
        return {
            'success': self.success,
            'dry_run': self.dry_run,
            'total_packages': self.total_packages,
            'successful_packages': self.successful_packages,
            'total_targets': self.total_targets,
            'successful_targets': self.successful_targets,
            'abort_reason': self.abort_reason.value if self.abort_reason else None,
            'abort_message': self.abort_message,
            'build_error': self.build_error,
            'build_output': self.build_output,
            'cycle_info': self.cycle_info or None,
            'packages': [p.to_dict() for p in self.packages],
            'not_attempted': [{'name': p.name, 'version': p.version} for p in self.not_attempted],
            'pre_validation': self.pre_validation.to_dict() if self.pre_validation else None,
            'auth': self.auth.to_dict() if self.auth else None,
        }


def aggregate(
    packages: list[PackagePublishResult],
    *,
    auth: RegistryAuthResult | None = None,
    cycle_info: str = '',
    dry_run: bool = False,
) -> RunResult:
    """Fold per-package results into a :class:`RunResult`."""
    return RunResult(packages=list(packages), auth=auth, cycle_info=cycle_info, dry_run=dry_run)


__all__ = [
    'AbortReason',
    'AlreadyPublishedReason',
    'PackagePlan',
    'PackagePublishResult',
    'PreValidationReport',
    'PreValidationStatus',
    'PreValidationTarget',
    'RunResult',
    'TargetResult',
    'aggregate',
]
