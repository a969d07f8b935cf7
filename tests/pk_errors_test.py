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

"""Tests for publishkit.errors and publishkit.logging."""

from __future__ import annotations

import io

from publishkit.errors import (
    ERRORS,
    E,
    ErrorCode,
    PublishKitError,
    PublishKitWarning,
    explain,
    render_error,
    render_warning,
)
from publishkit.logging import redact_secrets


class TestErrorCode:
    """Tests for the ErrorCode enum."""

    def test_prefix(self) -> None:
        """Every code uses the PK- prefix."""
        assert all(code.value.startswith('PK-') for code in ErrorCode)

    def test_catalog_keys_match(self) -> None:
        """Catalog entries are keyed by their own code."""
        assert all(info.code is code for code, info in ERRORS.items())


class TestPublishKitError:
    """Tests for PublishKitError."""

    def test_str_has_code(self) -> None:
        """str() carries the code; message does not."""
        exc = PublishKitError(E.BUILD_FAILED, 'Build exited with code 2', hint='fix it')
        assert str(exc) == '[PK-BUILD-FAILED] Build exited with code 2'
        assert exc.message == 'Build exited with code 2'
        assert exc.hint == 'fix it'


class TestExplain:
    """Tests for explain."""

    def test_known(self) -> None:
        """Catalogued codes include the hint."""
        text = explain('PK-BUILD-FAILED')
        assert text is not None
        assert 'Hint:' in text

    def test_uncatalogued(self) -> None:
        """Valid codes without an entry still explain themselves."""
        assert explain('PK-PUBLISH-FAILED') == 'PK-PUBLISH-FAILED: No detailed explanation available.'

    def test_unknown(self) -> None:
        """Unknown codes return None."""
        assert explain('PK-NOPE') is None


class TestRender:
    """Tests for plain (non-TTY) rendering."""

    def test_error(self) -> None:
        """Compiler-style error with hint."""
        out = io.StringIO()
        render_error(PublishKitError(E.BUILD_FAILED, 'boom', hint='fix'), file=out)
        assert out.getvalue().splitlines() == ['error[PK-BUILD-FAILED]: boom', '  |', '  = hint: fix', '']

    def test_warning_without_hint(self) -> None:
        """No hint, no hint lines."""
        out = io.StringIO()
        render_warning(PublishKitWarning(E.GRAPH_CYCLE_DETECTED, 'cycle'), file=out)
        assert out.getvalue() == 'warning[PK-GRAPH-CYCLE-DETECTED]: cycle\n\n'


class TestRedactSecrets:
    """Tests for the redact_secrets processor."""

    def test_masks_credential_keys(self) -> None:
        """Token-like keys are masked, env var names are not."""
        event = redact_secrets(
            None,
            'info',
            {
                'event': 'publish',
                'token': 'abc',
                'npm_config_//r/:_authToken': 'def',
                'token_env': 'GITHUB_TOKEN',
                'registry': 'https://r/',
            },
        )
        assert event['token'] == '***'
        assert event['npm_config_//r/:_authToken'] == '***'
        assert event['token_env'] == 'GITHUB_TOKEN'
        assert event['registry'] == 'https://r/'

    def test_masks_nested(self) -> None:
        """Nested mappings (``env=...``) are masked too."""
        event = redact_secrets(None, 'info', {'event': 'x', 'env': {'NPM_TOKEN': 'secret', 'CI': 'true'}})
        assert event['env'] == {'NPM_TOKEN': '***', 'CI': 'true'}
