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

"""Tests for publishkit.results."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from publishkit.classify import DryRunStats
from publishkit.results import (
    AbortReason,
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
from publishkit.targets import NPM_REGISTRY, PublishProtocol, Target

TARGET = Target(protocol=PublishProtocol.NPM, registry=NPM_REGISTRY, directory=Path('/tmp/pkg'))


def _ok(**kwargs: object) -> TargetResult:
    return TargetResult(target=TARGET, success=True, **kwargs)  # type: ignore[arg-type]


def _failed() -> TargetResult:
    return TargetResult(target=TARGET, success=False, error='E401', exit_code=1)


class TestTargetResultInvariants:
    """The reason and success fields must agree."""

    def test_reason_requires_already_published(self) -> None:
        """A reason without already_published is rejected."""
        with pytest.raises(ValueError, match='already_published'):
            _ok(reason=AlreadyPublishedReason.IDENTICAL)

    def test_different_cannot_succeed(self) -> None:
        """DIFFERENT content is always a failure."""
        with pytest.raises(ValueError, match='different content'):
            _ok(already_published=True, reason=AlreadyPublishedReason.DIFFERENT)

    @pytest.mark.parametrize('reason', [AlreadyPublishedReason.IDENTICAL, AlreadyPublishedReason.UNKNOWN])
    def test_identical_and_unknown_succeed(self, reason: AlreadyPublishedReason) -> None:
        """IDENTICAL and UNKNOWN must be successes."""
        with pytest.raises(ValueError, match='must succeed'):
            TargetResult(target=TARGET, success=False, already_published=True, reason=reason)

    def test_to_dict_is_json(self) -> None:
        """to_dict serializes, including stats."""
        res = _ok(stats=DryRunStats(package_size='1 kB', total_files=2), dry_run=True)
        data = json.loads(json.dumps(res.to_dict()))
        assert data['stats']['total_files'] == 2
        assert data['error'] is None
        assert data['category'] == 'none'


class TestPackagePublishResult:
    """Tests for PackagePublishResult."""

    def test_success_requires_all_targets(self) -> None:
        """One failed target fails the package."""
        assert PackagePublishResult('a', '1.0.0', [_ok(), _ok()]).success
        assert not PackagePublishResult('a', '1.0.0', [_ok(), _failed()]).success

    def test_newly_published(self) -> None:
        """Skipped targets do not count as newly published."""
        skipped = _ok(already_published=True, reason=AlreadyPublishedReason.IDENTICAL)
        assert not PackagePublishResult('a', '1.0.0', [skipped]).newly_published
        assert PackagePublishResult('a', '1.0.0', [skipped, _ok()]).newly_published


class TestPreValidationReport:
    """Tests for PreValidationReport."""

    def test_partition(self) -> None:
        """Targets are partitioned by status."""

        def item(status: PreValidationStatus) -> PreValidationTarget:
            return PreValidationTarget('a', '1.0.0', TARGET, status)

        report = PreValidationReport([
            item(PreValidationStatus.READY),
            item(PreValidationStatus.SKIP),
            item(PreValidationStatus.ERROR),
        ])
        assert len(report.ready) == len(report.skipped) == len(report.errors) == 1
        assert not report.ok
        assert report.to_dict()['errors'] == 1


class TestRunResult:
    """Tests for RunResult counts and success."""

    def test_empty_run_succeeds(self) -> None:
        """Nothing to do is success."""
        run = RunResult()
        assert run.success
        assert run.total_packages == 0

    def test_counts_are_derived(self) -> None:
        """Counts come from the package and target lists."""
        run = aggregate([
            PackagePublishResult('a', '1.0.0', [_ok(), _ok()]),
            PackagePublishResult('b', '1.0.0', [_ok(), _failed()]),
        ])
        assert run.total_packages == 2
        assert run.successful_packages == 1
        assert run.total_targets == 4
        assert run.successful_targets == 3
        assert not run.success

    def test_build_failed(self) -> None:
        """An aborted run counts planned work as not attempted."""
        plan = PackagePlan('a', '1.0.0', Path('/tmp/a'), (TARGET, TARGET))
        run = RunResult.build_failed([plan], 'Build failed with exit code 2', 'tsc: error')
        assert not run.success
        assert run.abort_reason is AbortReason.BUILD
        assert run.build_error == 'Build failed with exit code 2'
        assert run.total_packages == 1
        assert run.total_targets == 2
        assert run.successful_targets == 0
        assert run.to_dict()['not_attempted'] == [{'name': 'a', 'version': '1.0.0'}]

    def test_pre_validation_failed(self) -> None:
        """The report is attached and the abort names pre-validation."""
        plan = PackagePlan('a', '1.0.0', Path('/tmp/a'), (TARGET,))
        report = PreValidationReport([
            PreValidationTarget('a', '1.0.0', TARGET, PreValidationStatus.ERROR, error='Content mismatch'),
        ])
        run = RunResult.pre_validation_failed([plan], report)
        assert run.abort_reason is AbortReason.PRE_VALIDATION
        assert run.abort_message == 'Pre-validation failed: 1 target(s) have errors'
        assert run.build_error is None
        assert run.pre_validation is report
        assert not run.success

    def test_registry_unreachable(self) -> None:
        """An unreachable registry is its own abort, not a build failure."""
        plan = PackagePlan('a', '1.0.0', Path('/tmp/a'), (TARGET,))
        run = RunResult.registry_unreachable([plan], 'Registry unreachable: https://r.example.com/: refused')
        assert not run.success
        assert run.abort_reason is AbortReason.REGISTRY_UNREACHABLE
        assert run.build_error is None
        data = run.to_dict()
        assert data['abort_reason'] == 'registry_unreachable'
        assert data['abort_message'] == 'Registry unreachable: https://r.example.com/: refused'
        assert data['build_error'] is None
