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

"""Publish target resolution.

Expands a package's ``publishConfig`` into concrete :class:`Target`
records. Each target is one (protocol, registry) destination.

Key Concepts (ELI5)::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                            │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Shorthand               │ "npm", "github" or "jsr". A nickname that  │
    │                         │ expands to a full preset target.           │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Registry URL            │ "https://registry.example.com/". A custom  │
    │                         │ npm registry with a derived token name.    │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Target object           │ Fully spelled out. Unset fields inherit    │
    │                         │ from publishConfig, then hard defaults.    │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Legacy mode             │ publishConfig without "targets": exactly   │
    │                         │ one npm target.                            │
    └─────────────────────────┴─────────────────────────────────────────────┘

Resolution rules::

    no publishConfig, private     → []
    no publishConfig, not private → [npm target at the package root]
    publishConfig, no targets     → [one npm target from publishConfig]
    publishConfig.targets         → one target per entry, in order

The raw entry shapes are parsed once by :func:`parse_target_spec` into a
tagged union (:class:`ShorthandSpec`, :class:`RegistryUrlSpec`,
:class:`ObjectSpec`); everything downstream sees only :class:`Target`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from publishkit.errors import E, PublishKitError
from publishkit.logging import get_logger
from publishkit.workspace import Manifest

log = get_logger('publishkit.targets')

NPM_REGISTRY = 'https://registry.npmjs.org/'
GITHUB_REGISTRY = 'https://npm.pkg.github.com/'
DEFAULT_TAG = 'latest'


class PublishProtocol(str, Enum):
    """How a target is published."""

    NPM = 'npm'
    JSR = 'jsr'


class Access(str, Enum):
    """npm ``--access`` level."""

    PUBLIC = 'public'
    RESTRICTED = 'restricted'


@dataclass(frozen=True)
class Target:
    """One resolved publish destination for a package.

    Attributes:
        protocol: ``npm`` or ``jsr``.
        registry: Registry URL; ``None`` only for JSR.
        directory: Absolute directory to publish from.
        access: npm access level.
        provenance: Whether to publish with ``--provenance``.
        tag: Dist-tag (``latest`` unless configured).
        token_env: Name of the env var holding the registry token, or
            ``None`` when the registry authenticates through OIDC.
    """

    protocol: PublishProtocol
    registry: str | None
    directory: Path
    access: Access = Access.RESTRICTED
    provenance: bool = False
    tag: str = DEFAULT_TAG
    token_env: str | None = None

    def __post_init__(self) -> None:
        """Reject a missing registry on npm targets."""
        if self.registry is None and self.protocol is not PublishProtocol.JSR:
            raise ValueError('Only jsr targets may omit the registry URL')

    @property
    def display_name(self) -> str:
        """Human-readable registry name (``npm``, ``GitHub Packages``...)."""
        return registry_display_name(self.registry)

    def to_dict(self) -> dict[str, Any]:  # noqa: ANN401 - JSON-ready values
        """Return a JSON-serializable view."""
        return {
            'protocol': self.protocol.value,
            'registry': self.registry,
            'directory': str(self.directory),
            'access': self.access.value,
            'provenance': self.provenance,
            'tag': self.tag,
            'token_env': self.token_env,
        }


@dataclass(frozen=True)
class _RegistryDefaults:
    provenance: bool
    access: Access
    token_env: str | None


_WELL_KNOWN_DEFAULTS: dict[str, _RegistryDefaults] = {
    # npm authenticates with OIDC trusted publishing.
    NPM_REGISTRY: _RegistryDefaults(provenance=True, access=Access.RESTRICTED, token_env=None),
    GITHUB_REGISTRY: _RegistryDefaults(provenance=True, access=Access.RESTRICTED, token_env='GITHUB_TOKEN'),
}


def registry_to_env_name(registry: str) -> str:
    """Derive a token env var name from a registry URL.

    ``https://registry.savvyweb.dev/`` → ``REGISTRY_SAVVYWEB_DEV_TOKEN``.
    """
    stripped = re.sub(r'^https?://', '', registry)
    name = re.sub(r'[^a-zA-Z0-9]', '_', stripped).upper()
    name = re.sub(r'_+', '_', name).strip('_')
    return f'{name}_TOKEN'


def _registry_defaults(registry: str | None) -> _RegistryDefaults:
    if not registry:
        return _RegistryDefaults(provenance=False, access=Access.RESTRICTED, token_env=None)
    known = _WELL_KNOWN_DEFAULTS.get(registry)
    if known is not None:
        return known
    return _RegistryDefaults(provenance=False, access=Access.RESTRICTED, token_env=registry_to_env_name(registry))


# Target entry shapes


@dataclass(frozen=True)
class ShorthandSpec:
    """A ``"npm"``, ``"github"`` or ``"jsr"`` entry."""

    name: str


@dataclass(frozen=True)
class RegistryUrlSpec:
    """A bare ``http(s)://`` registry URL entry."""

    url: str


@dataclass(frozen=True)
class ObjectSpec:
    """A target object; ``None`` fields inherit."""

    protocol: PublishProtocol
    registry: str | None = None
    directory: str | None = None
    access: Access | None = None
    provenance: bool | None = None
    tag: str | None = None
    token_env: str | None = None


TargetSpec = ShorthandSpec | RegistryUrlSpec | ObjectSpec

_SHORTHANDS: dict[str, ObjectSpec] = {
    'npm': ObjectSpec(protocol=PublishProtocol.NPM, registry=NPM_REGISTRY, provenance=True),
    'github': ObjectSpec(
        protocol=PublishProtocol.NPM,
        registry=GITHUB_REGISTRY,
        provenance=True,
        token_env='GITHUB_TOKEN',
    ),
    'jsr': ObjectSpec(protocol=PublishProtocol.JSR, provenance=False),
}


def _enum_value(enum_cls: type[Enum], value: object, field_name: str) -> Any:  # noqa: ANN401
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(repr(m.value) for m in enum_cls)
        raise PublishKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'Invalid target {field_name}: {value!r}',
            hint=f'Use one of {allowed}.',
        ) from None


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:  # noqa: ANN401
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PublishKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"Target field '{key}' must be a string, got {type(value).__name__}",
        )
    return value


def parse_target_spec(entry: object) -> TargetSpec:
    """Classify one ``publishConfig.targets`` entry.

    Raises:
        PublishKitError: ``PK-CONFIG-UNKNOWN-TARGET`` for an unknown
            shorthand, ``PK-CONFIG-INVALID-VALUE`` for a malformed object.
    """
    if isinstance(entry, str):
        if entry in _SHORTHANDS:
            return ShorthandSpec(name=entry)
        if entry.startswith(('https://', 'http://')):
            return RegistryUrlSpec(url=entry)
        raise PublishKitError(
            code=E.CONFIG_UNKNOWN_TARGET,
            message=f'Unknown target shorthand: {entry}',
            hint="Use 'npm', 'github', 'jsr', or an http(s) registry URL.",
        )
    if isinstance(entry, dict):
        provenance = entry.get('provenance')
        if provenance is not None and not isinstance(provenance, bool):
            raise PublishKitError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"Target field 'provenance' must be a boolean, got {provenance!r}",
            )
        return ObjectSpec(
            protocol=_enum_value(PublishProtocol, entry.get('protocol', 'npm'), 'protocol'),
            registry=_optional_str(entry, 'registry'),
            directory=_optional_str(entry, 'directory'),
            access=_enum_value(Access, entry.get('access'), 'access'),
            provenance=provenance,
            tag=_optional_str(entry, 'tag'),
            token_env=_optional_str(entry, 'tokenEnv'),
        )
    raise PublishKitError(
        code=E.CONFIG_INVALID_VALUE,
        message=f'Invalid publish target entry: {entry!r}',
        hint='A target is a shorthand string, a registry URL, or an object.',
    )


def _expand(spec: TargetSpec) -> ObjectSpec:
    if isinstance(spec, ShorthandSpec):
        return _SHORTHANDS[spec.name]
    if isinstance(spec, RegistryUrlSpec):
        return ObjectSpec(
            protocol=PublishProtocol.NPM,
            registry=spec.url,
            provenance=False,
            token_env=registry_to_env_name(spec.url),
        )
    return spec


def _resolve_dir(package_path: Path, directory: str | None) -> Path | None:
    if not directory:
        return None
    return (package_path / directory).resolve()


def resolve_targets(package_path: Path, manifest: Manifest) -> list[Target]:
    """Resolve every publish target for one package.

    Args:
        package_path: Absolute path to the package directory.
        manifest: The package's parsed ``package.json``.

    Returns:
        Targets in configuration order. Empty for a private package
        without ``publishConfig``.

    Raises:
        PublishKitError: On an unknown shorthand or malformed target.
    """
    package_path = package_path.resolve()
    config = manifest.publish_config

    if config is None:
        if manifest.private:
            return []
        return [
            Target(
                protocol=PublishProtocol.NPM,
                registry=NPM_REGISTRY,
                directory=package_path,
                access=Access.RESTRICTED,
                provenance=True,
                tag=DEFAULT_TAG,
                token_env=None,
            )
        ]

    config_dir = config.get('directory')
    base_dir = _resolve_dir(package_path, config_dir if isinstance(config_dir, str) else None) or package_path
    config_access = _enum_value(Access, config.get('access') or None, 'access')

    raw_targets = config.get('targets')
    if not raw_targets:
        registry = _optional_str(config, 'registry') or NPM_REGISTRY
        defaults = _registry_defaults(registry)
        return [
            Target(
                protocol=PublishProtocol.NPM,
                registry=registry,
                directory=base_dir,
                access=config_access or defaults.access,
                provenance=defaults.provenance,
                tag=_optional_str(config, 'tag') or DEFAULT_TAG,
                token_env=defaults.token_env,
            )
        ]

    if not isinstance(raw_targets, list):
        raise PublishKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'publishConfig.targets must be a list in {manifest.name or package_path}',
        )

    targets: list[Target] = []
    for entry in raw_targets:
        spec = _expand(parse_target_spec(entry))
        registry = (spec.registry or NPM_REGISTRY) if spec.protocol is PublishProtocol.NPM else None
        defaults = _registry_defaults(registry)
        targets.append(
            Target(
                protocol=spec.protocol,
                registry=registry,
                directory=_resolve_dir(package_path, spec.directory) or base_dir,
                access=spec.access or config_access or defaults.access,
                provenance=defaults.provenance if spec.provenance is None else spec.provenance,
                tag=spec.tag or DEFAULT_TAG,
                token_env=spec.token_env or defaults.token_env,
            )
        )
    log.debug('resolved_targets', package=manifest.name, count=len(targets))
    return targets


# Registry classification


def _hostname(url: str | None) -> str | None:
    if not url:
        return None
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def _matches_domain(hostname: str | None, domain: str) -> bool:
    """Exact or subdomain match; ``evil-npmjs.org`` is not ``npmjs.org``."""
    if not hostname:
        return False
    return hostname == domain or hostname.endswith(f'.{domain}')


def is_npm_registry(registry: str | None) -> bool:
    """Whether ``registry`` is the public npm registry."""
    return _matches_domain(_hostname(registry), 'npmjs.org')


def is_github_registry(registry: str | None) -> bool:
    """Whether ``registry`` is GitHub Packages."""
    return _matches_domain(_hostname(registry), 'pkg.github.com')


def is_jsr_registry(registry: str | None) -> bool:
    """Whether ``registry`` is JSR."""
    return _matches_domain(_hostname(registry), 'jsr.io')


def registry_type(registry: str | None) -> str:
    """Classify a registry URL as ``npm``, ``github-packages``, ``jsr`` or ``custom``."""
    if is_npm_registry(registry):
        return 'npm'
    if is_github_registry(registry):
        return 'github-packages'
    if is_jsr_registry(registry):
        return 'jsr'
    return 'custom'


def registry_display_name(registry: str | None) -> str:
    """Human-readable registry name; ``None`` is JSR."""
    if not registry:
        return 'jsr.io'
    if is_npm_registry(registry):
        return 'npm'
    if is_github_registry(registry):
        return 'GitHub Packages'
    if is_jsr_registry(registry):
        return 'jsr.io'
    return _hostname(registry) or registry


def package_view_url(registry: str | None, package_name: str | None) -> str | None:
    """URL of the package page on its registry, when one is known."""
    if not registry or not package_name:
        return None
    if is_npm_registry(registry):
        return f'https://www.npmjs.com/package/{package_name}'
    if is_github_registry(registry) and package_name.startswith('@'):
        scope = package_name.split('/', 1)[0][1:]
        return f'https://github.com/{scope}/packages'
    return None


__all__ = [
    'DEFAULT_TAG',
    'GITHUB_REGISTRY',
    'NPM_REGISTRY',
    'Access',
    'ObjectSpec',
    'PublishProtocol',
    'RegistryUrlSpec',
    'ShorthandSpec',
    'Target',
    'TargetSpec',
    'is_github_registry',
    'is_jsr_registry',
    'is_npm_registry',
    'package_view_url',
    'parse_target_spec',
    'registry_display_name',
    'registry_to_env_name',
    'registry_type',
    'resolve_targets',
]
