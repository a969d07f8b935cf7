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

"""Configuration reader for publishkit.

Reads ``publishkit.toml`` from the workspace root and returns a
validated :class:`PublishKitConfig`. Keys are flat and top-level. A
missing file means "all defaults". Per-package publish targets do not
live here; they come from each ``package.json`` ``publishConfig``.

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                           │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ PublishKitConfig        │ The knobs for a publish run: package      │
    │                         │ manager, build script, retries, timeouts. │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ load_config()           │ Read publishkit.toml and check every key. │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Fuzzy key matching      │ A typo'd key gets a "did you mean?" hint. │
    └─────────────────────────┴────────────────────────────────────────────┘

Validation Pipeline::

    publishkit.toml
    ┌──────────────────┐
    │ concurency = 4   │  ← typo!
    └────────┬─────────┘
             │
             ▼
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 1. Unknown key   │────→│ PK-CONFIG-INVALID-KEY:       │
    │    detection     │     │ hint: "Did you mean          │
    └────────┬─────────┘     │       'concurrency'?"        │
             │               └──────────────────────────────┘
             ▼
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 2. Type check    │────→│ PK-CONFIG-INVALID-VALUE:     │
    │    each value    │     │ Expected int, got str        │
    └────────┬─────────┘     └──────────────────────────────┘
             │
             ▼
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 3. Range / enum  │────→│ PK-CONFIG-INVALID-VALUE:     │
    │    validation    │     │ concurrency must be >= 1     │
    └────────┬─────────┘     └──────────────────────────────┘
             │
             ▼
    PublishKitConfig (frozen)

Usage::

    from publishkit.config import load_config

    config = load_config(Path('.'))
    print(config.package_manager)  # 'pnpm'
"""

from __future__ import annotations

import dataclasses
import difflib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from publishkit.backends.pm._commands import PACKAGE_MANAGERS
from publishkit.build import DEFAULT_BUILD_SCRIPT
from publishkit.errors import E, PublishKitError
from publishkit.logging import get_logger

logger = get_logger(__name__)

CONFIG_FILENAME = 'publishkit.toml'


@dataclass(frozen=True)
class PublishKitConfig:
    """Validated publishkit settings.

    Attributes:
        package_manager: Runs the build and changeset status.
        build_script: package.json script run once before packing.
        concurrency: Packages publishing at once within one graph rank.
        max_attempts: Publish invocations per target for transient failures.
        retry_delay: Seconds; the wait before attempt ``n + 1`` is
            ``retry_delay * n``.
        http_timeout: Registry HTTP timeout in seconds.
        http_pool_size: Registry HTTP connection pool size.
        registry_check_timeout: Timeout for custom registry pings.
        attestation_command: Command run per package after publishing to
            produce an attestation URL. Empty disables it.
        config_path: Where the settings were read from, if anywhere.
    """

    package_manager: str = 'npm'
    build_script: str = DEFAULT_BUILD_SCRIPT
    concurrency: int = 1
    max_attempts: int = 2
    retry_delay: float = 30.0
    http_timeout: float = 30.0
    http_pool_size: int = 10
    registry_check_timeout: float = 10.0
    attestation_command: str = ''
    config_path: Path | None = None

    def with_overrides(self, **overrides: Any) -> PublishKitConfig:  # noqa: ANN401 - CLI values
        """Return a copy with non-``None`` overrides applied and validated."""
        values = {k: v for k, v in overrides.items() if v is not None}
        for key, value in values.items():
            if key not in VALID_KEYS:
                raise PublishKitError(
                    code=E.CONFIG_INVALID_KEY,
                    message=f"Unknown override '{key}'",
                )
            _validate_value(key, value, context='command line')
        return dataclasses.replace(self, **values)


VALID_KEYS: frozenset[str] = frozenset(f.name for f in dataclasses.fields(PublishKitConfig) if f.name != 'config_path')

_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'package_manager': str,
    'build_script': str,
    'concurrency': int,
    'max_attempts': int,
    'retry_delay': (int, float),
    'http_timeout': (int, float),
    'http_pool_size': int,
    'registry_check_timeout': (int, float),
    'attestation_command': str,
}

_MINIMUMS: dict[str, float] = {
    'concurrency': 1,
    'max_attempts': 1,
    'retry_delay': 0,
    'http_timeout': 0.1,
    'http_pool_size': 1,
    'registry_check_timeout': 0.1,
}


def _suggest_key(unknown: str) -> str | None:
    """Return the closest valid key for a typo, or None."""
    matches = difflib.get_close_matches(unknown, VALID_KEYS, n=1, cutoff=0.6)
    return matches[0] if matches else None


def _validate_value(key: str, value: Any, *, context: str = CONFIG_FILENAME) -> None:  # noqa: ANN401 - dynamic config
    """Raise if a config value has the wrong type or is out of range."""
    expected = _TYPE_MAP[key]
    # bool is an int subclass; reject it for numeric keys.
    if isinstance(value, bool) or not isinstance(value, expected):
        type_name = expected.__name__ if isinstance(expected, type) else 'number'
        raise PublishKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be {type_name}, got {type(value).__name__}",
            hint=f'Check the value of {key} in {context}.',
        )
    minimum = _MINIMUMS.get(key)
    if minimum is not None and value < minimum:
        raise PublishKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be >= {minimum}, got {value}",
            hint=f'Check the value of {key} in {context}.',
        )
    if key == 'package_manager' and value not in PACKAGE_MANAGERS:
        raise PublishKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"package_manager must be one of {sorted(PACKAGE_MANAGERS)}, got '{value}'",
            hint=f'Check the value of package_manager in {context}.',
        )
    if key == 'build_script' and not value.strip():
        raise PublishKitError(
            code=E.CONFIG_INVALID_VALUE,
            message='build_script must not be empty',
        )


def load_config(workspace_root: Path) -> PublishKitConfig:
    """Load and validate ``publishkit.toml``.

    Args:
        workspace_root: Directory containing ``publishkit.toml``.

    Returns:
        A validated :class:`PublishKitConfig`; defaults when the file
        does not exist.

    Raises:
        PublishKitError: If the file cannot be parsed or holds an
            invalid key or value.
    """
    config_path = workspace_root / CONFIG_FILENAME

    if not config_path.is_file():
        logger.debug('no_publishkit_config', path=str(config_path))
        return PublishKitConfig()

    try:
        text = config_path.read_text(encoding='utf-8')
    except OSError as exc:
        raise PublishKitError(
            code=E.CONFIG_NOT_FOUND,
            message=f'Failed to read {config_path}: {exc}',
        ) from exc

    try:
        doc = tomlkit.parse(text)
    except tomlkit.exceptions.TOMLKitError as exc:
        raise PublishKitError(
            code=E.CONFIG_NOT_FOUND,
            message=f'Failed to parse {config_path}: {exc}',
            hint='Check the TOML syntax of publishkit.toml.',
        ) from exc

    raw: dict[str, Any] = doc.unwrap()  # noqa: ANN401

    for key in raw:
        if key not in VALID_KEYS:
            suggestion = _suggest_key(key)
            raise PublishKitError(
                code=E.CONFIG_INVALID_KEY,
                message=f"Unknown key '{key}' in {CONFIG_FILENAME}",
                hint=f"Did you mean '{suggestion}'?" if suggestion else f'Valid keys: {", ".join(sorted(VALID_KEYS))}.',
            )

    for key, value in raw.items():
        _validate_value(key, value)

    logger.debug('publishkit_config_loaded', path=str(config_path), keys=sorted(raw))
    return PublishKitConfig(**raw, config_path=config_path)


__all__ = [
    'CONFIG_FILENAME',
    'VALID_KEYS',
    'PublishKitConfig',
    'load_config',
]
