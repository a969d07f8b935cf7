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

"""Fake build runner, attestor and sleep for tests."""

from __future__ import annotations

from publishkit.attestation import AttestationRequest, AttestationResult
from publishkit.build import BuildResult


class FakeBuildRunner:
    """Returns a fixed :class:`BuildResult` and counts runs."""

    def __init__(self, result: BuildResult | None = None) -> None:
        """Initialize with the result to return."""
        self._result = result or BuildResult(exit_code=0)
        self.runs = 0

    async def run(self) -> BuildResult:
        """Return the configured result."""
        self.runs += 1
        return self._result


class FakeAttestor:
    """Records requests and returns a fixed result."""

    def __init__(self, result: AttestationResult | None = None, *, error: Exception | None = None) -> None:
        """Initialize with the result (or error) to produce."""
        self._result = result or AttestationResult(success=True, attestation_url='https://attest.test/1')
        self._error = error
        self.requests: list[AttestationRequest] = []

    async def attest(self, request: AttestationRequest) -> AttestationResult:
        """Record ``request`` and return the configured result."""
        self.requests.append(request)
        if self._error is not None:
            raise self._error
        return self._result


class RecordingSleep:
    """Async sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        """Initialize with no recorded delays."""
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        """Record ``seconds``."""
        self.delays.append(seconds)
