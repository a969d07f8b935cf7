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

"""Registry credential setup.

Runs once, before anything is built or published, and produces a
read-only :class:`AuthConfig` that is threaded into every publish call.
Nothing is written to ``os.environ`` or to ``~/.npmrc``. Each npm child
process gets its registry credential as a per-call
``npm_config_//host/path/:_authToken`` environment override.

Key Concepts (ELI5)::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                            │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ OIDC registries         │ npm and JSR trust the CI provider's        │
    │                         │ identity token. No secret needed.          │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Missing token           │ A warning. The publish is still tried      │
    │                         │ and will fail with a clear auth error.     │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Unreachable registry    │ Fatal. Nothing is built or published.      │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Auth string             │ A token value may already be an npmrc      │
    │                         │ fragment: "_authToken=..." or "_auth=...". │
    └─────────────────────────┴─────────────────────────────────────────────┘

Only custom registries are pinged. Public npm and GitHub Packages are
assumed up.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from publishkit.errors import E
from publishkit.logging import get_logger
from publishkit.targets import PublishProtocol, Target, is_github_registry, is_npm_registry, registry_to_env_name

logger = get_logger(__name__)

TOKEN_NOT_SPECIFIED = 'tokenEnv not specified'

Ping = Callable[[str], Awaitable[str | None]]

_AUTH_TOKEN_SUFFIX = re.compile(r'^(.+?)(_authToken=.+)$')
_AUTH_SUFFIX = re.compile(r'^(.+?)(_auth=.+)$')


@dataclass(frozen=True)
class MissingToken:
    """A registry whose token env var is unset."""

    registry: str
    token_env: str


@dataclass(frozen=True)
class UnreachableRegistry:
    """A registry that did not answer its ping."""

    registry: str
    error: str


def _npmrc_key(registry: str) -> str:
    """``https://npm.example.com/`` → ``//npm.example.com/``."""
    key = re.sub(r'^https?:', '', registry)
    return key if key.endswith('/') else f'{key}/'


@dataclass(frozen=True)
class AuthConfig:
    """Read-only registry credentials for one run.

    Attributes:
        credentials: Registry URL to credential. A credential is a raw
            token, ``_authToken=<token>`` or ``_auth=<base64>``.
    """

    credentials: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        """Freeze the credential mapping."""
        object.__setattr__(self, 'credentials', MappingProxyType(dict(self.credentials)))

    def __repr__(self) -> str:
        """Show which registries have credentials, never the values."""
        return f'AuthConfig(registries={sorted(self.credentials)!r})'

    def token_for(self, registry: str | None) -> str | None:
        """Bearer token for registry metadata reads, if one is configured."""
        if not registry:
            return None
        value = self.credentials.get(registry)
        if not value or value.startswith('_auth='):
            return None
        return value.removeprefix('_authToken=')

    def env_for(self, target: Target) -> dict[str, str]:
        """Environment overrides that authenticate ``target``'s publish call."""
        if target.protocol is not PublishProtocol.NPM or not target.registry:
            return {}
        value = self.credentials.get(target.registry)
        if not value:
            return {}
        prefix = f'npm_config_{_npmrc_key(target.registry)}:'
        if value.startswith('_auth='):
            return {f'{prefix}_auth': value.removeprefix('_auth=')}
        return {f'{prefix}_authToken': value.removeprefix('_authToken=')}


@dataclass(frozen=True)
class RegistryAuthResult:
    """Outcome of :func:`setup_registry_auth`.

    Attributes:
        success: No missing tokens and no unreachable registries.
        configured_registries: Every distinct npm registry among the targets.
        missing_tokens: Registries without a usable token (a warning).
        unreachable_registries: Registries that failed the ping (fatal).
        auth: Credentials to hand to the publish calls.
    """

    success: bool
    configured_registries: list[str] = field(default_factory=list)
    missing_tokens: list[MissingToken] = field(default_factory=list)
    unreachable_registries: list[UnreachableRegistry] = field(default_factory=list)
    auth: AuthConfig = field(default_factory=AuthConfig)

    @property
    def fatal(self) -> bool:
        """Whether the run must stop before building."""
        return bool(self.unreachable_registries)

    def to_dict(self) -> dict[str, Any]:  # noqa: ANN401 - JSON-ready values
        """Return a JSON-serializable view."""
        return {
            'success': self.success,
            'configured_registries': list(self.configured_registries),
            'missing_tokens': [{'registry': m.registry, 'token_env': m.token_env} for m in self.missing_tokens],
            'unreachable_registries': [{'registry': u.registry, 'error': u.error} for u in self.unreachable_registries],
        }


def custom_registry_credentials(lines: Iterable[str], *, default_token: str | None = None) -> dict[str, str]:
    """Turn ``custom registry`` lines into derived env var values.

    Accepted line shapes::

        https://registry.example.com/                   uses default_token
        https://registry.example.com/_authToken=TOKEN   explicit token
        https://registry.example.com/_auth=BASE64       basic auth

    Returns:
        Derived env var name (``REGISTRY_EXAMPLE_COM_TOKEN``) to an
        ``_authToken=`` or ``_auth=`` string. Callers layer the result
        over their environment mapping.
    """
    env: dict[str, str] = {}
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        match = _AUTH_TOKEN_SUFFIX.match(line) or _AUTH_SUFFIX.match(line)
        if match:
            registry = match.group(1).rstrip('/') + '/'
            env[registry_to_env_name(registry)] = match.group(2)
        elif default_token:
            env[registry_to_env_name(line)] = f'_authToken={default_token}'
        else:
            continue
        logger.info('custom_registry_credential', registry=match.group(1) if match else line)
    return env


def _needs_token(target: Target) -> bool:
    # JSR and public npm authenticate through OIDC.
    return target.protocol is PublishProtocol.NPM and not is_npm_registry(target.registry)


def _needs_ping(registry: str) -> bool:
    return not is_npm_registry(registry) and not is_github_registry(registry)


async def setup_registry_auth(
    targets: Iterable[Target],
    *,
    environ: Mapping[str, str],
    ping: Ping,
) -> RegistryAuthResult:
    """Collect credentials and check that custom registries answer.

    Args:
        targets: Every target of the run.
        environ: Environment to read ``token_env`` values from.
        ping: Returns ``None`` for a reachable registry URL, otherwise
            an error description.

    Returns:
        A :class:`RegistryAuthResult`. Missing tokens are logged as
        warnings; unreachable registries make the result fatal.
    """
    targets = list(targets)
    missing: list[MissingToken] = []
    credentials: dict[str, str] = {}
    configured: list[str] = []

    for target in targets:
        registry = target.registry
        if target.protocol is PublishProtocol.NPM and registry and registry not in configured:
            configured.append(registry)
        if not _needs_token(target):
            continue
        if not target.token_env:
            missing.append(MissingToken(registry=registry or 'unknown', token_env=TOKEN_NOT_SPECIFIED))
            continue
        value = environ.get(target.token_env)
        if not value:
            missing.append(MissingToken(registry=registry or 'unknown', token_env=target.token_env))
            continue
        if registry:
            credentials.setdefault(registry, value)

    for item in missing:
        logger.warning(
            'registry_token_missing',
            registry=item.registry,
            token_env=item.token_env,
            code=E.AUTH_TOKEN_MISSING.value,
        )

    to_ping = [registry for registry in configured if _needs_ping(registry)]
    answers = await asyncio.gather(*(ping(registry) for registry in to_ping))
    unreachable = [
        UnreachableRegistry(registry=registry, error=error)
        for registry, error in zip(to_ping, answers, strict=True)
        if error is not None
    ]
    for item in unreachable:
        logger.error('registry_unreachable', registry=item.registry, error=item.error)

    for registry in credentials:
        logger.info('registry_auth_configured', registry=registry)

    return RegistryAuthResult(
        success=not missing and not unreachable,
        configured_registries=configured,
        missing_tokens=missing,
        unreachable_registries=unreachable,
        auth=AuthConfig(credentials=credentials),
    )


__all__ = [
    'TOKEN_NOT_SPECIFIED',
    'AuthConfig',
    'MissingToken',
    'Ping',
    'RegistryAuthResult',
    'UnreachableRegistry',
    'custom_registry_credentials',
    'setup_registry_auth',
]
