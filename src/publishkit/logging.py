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

"""Structured logging for publishkit.

Configures `structlog <https://www.structlog.org/>`_ with two output modes:

- **Console** (default when TTY): colored, human-readable output.
- **JSON** (``--json-log``): one JSON object per line, for CI log
  collectors.

Both modes write to stderr so stdout carries only the run result
(e.g., ``publishkit publish --json | jq .success``).

Registry credentials travel through the run as env overrides on
subprocess calls. :func:`redact_secrets` masks any event field that
looks like a credential so a stray ``env=...`` kwarg never leaks a token.

Usage::

    from publishkit.logging import configure_logging, get_logger

    configure_logging(verbose=True)
    log = get_logger(__name__)
    log.info('target_published', package='@scope/core', registry='npm')
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

_REDACTED = '***'
_SECRET_MARKERS = ('token', 'authtoken', '_auth', 'password', 'secret')


def _mask(value: Any) -> Any:  # noqa: ANN401 - arbitrary event values
    if isinstance(value, dict):
        return {k: (_REDACTED if _is_secret_key(str(k)) else _mask(v)) for k, v in value.items()}
    return value


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    if lowered.endswith('_env') or lowered == 'token_env':
        # Names of env variables are fine to log; their values are not.
        return False
    return any(marker in lowered for marker in _SECRET_MARKERS)


def redact_secrets(
    _logger: Any,  # noqa: ANN401 - structlog processor signature
    _method: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor that masks credential-looking fields."""
    for key in list(event_dict):
        if key == 'event':
            continue
        if _is_secret_key(key):
            event_dict[key] = _REDACTED
        else:
            event_dict[key] = _mask(event_dict[key])
    return event_dict


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    json_log: bool = False,
) -> None:
    """Configure structlog for publishkit.

    Should be called once at startup, before any logging calls.

    Args:
        verbose: Enable debug-level output.
        quiet: Suppress info-level output (only warnings and errors).
        json_log: Use JSON output instead of colored console output.
    """
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        format='%(message)s',
        stream=sys.stderr,
        level=level,
        force=True,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_log:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def get_logger(name: str = 'publishkit') -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger.

    Args:
        name: Logger name, used for filtering and identification.

    Returns:
        A :class:`structlog.stdlib.BoundLogger` instance.
    """
    return structlog.get_logger(name)


__all__ = [
    'configure_logging',
    'get_logger',
    'redact_secrets',
]
