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

"""Central subprocess abstraction for publishkit.

Every external tool call (``npm``, ``pnpm dlx``, ``jsr``, the build
script) goes through :func:`run_command`. This provides:

- Structured logging of every subprocess invocation.
- A consistent :class:`CommandResult` across all front-ends.
- Per-call environment overrides, so registry credentials are handed to
  one child process instead of being written into ``os.environ`` or a
  shared ``.npmrc``.

Launch failures (``FileNotFoundError`` when the tool is not installed,
``PermissionError`` when it is not executable) are not converted into
results. They propagate to the caller, which decides whether the
failure is worth retrying.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ run_command         │ A single function that runs any CLI tool.     │
    │                     │ Like a universal remote for npm and jsr.      │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ CommandResult       │ A receipt for the command you ran. Tells you  │
    │                     │ if it worked, what it printed, and how long.  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ env overrides       │ Extra variables for this one child process.   │
    │                     │ The parent environment is never changed.      │
    └─────────────────────┴────────────────────────────────────────────────┘
"""

from __future__ import annotations

import os
import subprocess  # noqa: S404 - subprocess is the core purpose of this module
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from publishkit.logging import get_logger

log = get_logger('publishkit.backends.run')

# Default timeout for subprocess calls (10 minutes; publishes with
# provenance sign through Sigstore and can be slow).
DEFAULT_TIMEOUT_SECONDS = 600


@dataclass(frozen=True)
class CommandResult:
    """Result of a subprocess invocation.

    Attributes:
        command: The command that was executed (as a list of strings).
        return_code: Process exit code (0 = success).
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock duration in milliseconds.
    """

    command: list[str]
    return_code: int
    stdout: str = ''
    stderr: str = ''
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        """Whether the command succeeded (return_code == 0)."""
        return self.return_code == 0

    @property
    def command_str(self) -> str:
        """The command as a single shell-style string."""
        return ' '.join(self.command)


def run_command(
    cmd: list[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
) -> CommandResult:
    """Execute a subprocess command with logging.

    Args:
        cmd: Command and arguments as a list of strings.
        cwd: Working directory for the command.
        env: Extra environment variables for the child (merged over the
            current environment, which is left untouched).
        timeout: Maximum seconds to wait before killing the process.

    Returns:
        A :class:`CommandResult` with the command output and metadata.

    Raises:
        FileNotFoundError: If the executable does not exist.
        PermissionError: If the executable cannot be run.
        subprocess.TimeoutExpired: If the command exceeds ``timeout``.
    """
    cmd_str = ' '.join(cmd)
    # Only variable names are logged, never their values.
    log.debug('run_command', cmd=cmd_str, cwd=str(cwd or '.'), env_keys=sorted(env or {}))

    full_env: dict[str, str] | None = None
    if env:
        full_env = {**os.environ, **env}

    start = time.monotonic()
    try:
        result = subprocess.run(  # noqa: S603 -- argv built by the front-ends
            cmd,
            cwd=cwd,
            env=full_env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        duration = (time.monotonic() - start) * 1000
        log.error('command_timeout', cmd=cmd_str, timeout=timeout, duration=duration)
        raise

    duration = (time.monotonic() - start) * 1000
    cmd_result = CommandResult(
        command=cmd,
        return_code=result.returncode,
        stdout=result.stdout or '',
        stderr=result.stderr or '',
        duration=duration,
    )

    if result.returncode != 0:
        log.warning(
            'command_failed',
            cmd=cmd_str,
            return_code=result.returncode,
            stderr=(result.stderr or '')[:500],
            duration=duration,
        )
    else:
        log.debug('command_ok', cmd=cmd_str, duration=duration)

    return cmd_result


# Re-export so consumers don't need to import subprocess directly.
TimeoutExpired = subprocess.TimeoutExpired

__all__ = [
    'CommandResult',
    'DEFAULT_TIMEOUT_SECONDS',
    'TimeoutExpired',
    'run_command',
]
