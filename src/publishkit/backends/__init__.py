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

"""Protocol-based backend layer for publishkit.

Every external interaction (npm, jsr, registry HTTP API) goes through an
injectable Protocol defined here, so the orchestration core can be
tested with in-memory fakes.

Protocols (defined in subpackage ``__init__.py`` files):

- :class:`NpmFrontEnd`: pack and publish via npm (default: :class:`NpmCli`)
- :class:`JsrFrontEnd`: publish via jsr (default: :class:`JsrCli`)
- :class:`RegistryClient`: read version metadata and ping (default:
  :class:`NpmRegistry`)
"""

from publishkit.backends._run import CommandResult, run_command
from publishkit.backends.pm import JsrCli, JsrFrontEnd, NpmCli, NpmFrontEnd
from publishkit.backends.registry import NpmRegistry, RegistryClient, VersionMetadata

__all__ = [
    'CommandResult',
    'JsrCli',
    'JsrFrontEnd',
    'NpmCli',
    'NpmFrontEnd',
    'NpmRegistry',
    'RegistryClient',
    'VersionMetadata',
    'run_command',
]
