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

"""Per-package-manager command prefixes.

Whichever package manager the workspace uses, npm itself is invoked
through that manager's "execute" command. This sidesteps
manager-specific publish checks (pnpm refuses to publish from branches
such as ``changeset-release/main``)::

    ┌──────────┬──────────────────────┬─────────────────────┐
    │ manager  │ npm invocation       │ package runner      │
    ├──────────┼──────────────────────┼─────────────────────┤
    │ npm      │ npx npm <args>       │ npx <tool>          │
    │ pnpm     │ pnpm dlx npm <args>  │ pnpm dlx <tool>     │
    │ yarn     │ yarn npm <args>      │ yarn dlx <tool>     │
    │ bun      │ bun x npm <args>     │ bun x <tool>        │
    └──────────┴──────────────────────┴─────────────────────┘
"""

from __future__ import annotations

PACKAGE_MANAGERS: frozenset[str] = frozenset({'npm', 'pnpm', 'yarn', 'bun'})

_NPM_PREFIX: dict[str, list[str]] = {
    'pnpm': ['pnpm', 'dlx', 'npm'],
    'yarn': ['yarn', 'npm'],
    'bun': ['bun', 'x', 'npm'],
}

_RUNNER_PREFIX: dict[str, list[str]] = {
    'pnpm': ['pnpm', 'dlx'],
    'yarn': ['yarn', 'dlx'],
    'bun': ['bun', 'x'],
}


def npm_command(package_manager: str) -> list[str]:
    """Return the argv prefix that runs npm under ``package_manager``."""
    return list(_NPM_PREFIX.get(package_manager, ['npx', 'npm']))


def runner_command(package_manager: str) -> list[str]:
    """Return the argv prefix that runs a package binary (``npx`` equivalent)."""
    return list(_RUNNER_PREFIX.get(package_manager, ['npx']))


__all__ = [
    'PACKAGE_MANAGERS',
    'npm_command',
    'runner_command',
]
