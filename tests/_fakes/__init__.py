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

"""Shared test fakes for publishkit.

Provides reusable fake implementations of the npm/JSR front-ends, the
registry client, the build runner, the attestor and the retry sleep so
that orchestration tests run without subprocesses, network or timers.

Usage::

    from tests._fakes import OK, FakeNpmCli, FakeRegistry

    npm = FakeNpmCli(publish=[result(1, stderr='ECONNRESET'), OK])
    registry = FakeRegistry(published={('@scope/a', '1.0.0'): b'bytes'})
"""

from tests._fakes._build import (
    FakeAttestor as FakeAttestor,
    FakeBuildRunner as FakeBuildRunner,
    RecordingSleep as RecordingSleep,
)
from tests._fakes._pm import OK as OK, FakeJsrCli as FakeJsrCli, FakeNpmCli as FakeNpmCli, result as result
from tests._fakes._registry import FakeRegistry as FakeRegistry, shasum as shasum

__all__ = [
    'OK',
    'FakeAttestor',
    'FakeBuildRunner',
    'FakeJsrCli',
    'FakeNpmCli',
    'FakeRegistry',
    'RecordingSleep',
    'result',
    'shasum',
]
