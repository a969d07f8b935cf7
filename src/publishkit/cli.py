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

"""CLI entry point for publishkit.

Constructs the collaborators (front-ends, build runner, attestor) and
hands them to :func:`~publishkit.publisher.publish_packages`.

Subcommands::

    publishkit publish    Publish the release set to every target
    publishkit order      Show publish order and ranks
    publishkit targets    Show the resolved targets of one package
    publishkit explain    Explain an error code

Usage::

    # Validate everything without uploading:
    publishkit publish --dry-run

    # Publish a pre-computed release list, machine-readable result:
    publishkit publish --release-file releases.json --json | jq .success

    # Explain an error:
    publishkit explain PK-PREVALIDATION-FAILED

Logs go to stderr; stdout carries only the result.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich_argparse import RichHelpFormatter

from publishkit import __version__
from publishkit.attestation import Attestor, CommandAttestor, NullAttestor
from publishkit.auth import custom_registry_credentials
from publishkit.backends.pm import PACKAGE_MANAGERS
from publishkit.config import CONFIG_FILENAME, PublishKitConfig, load_config
from publishkit.errors import E, PublishKitError, PublishKitWarning, explain, render_error, render_warning
from publishkit.logging import configure_logging, get_logger
from publishkit.publisher import plan_release, publish_packages
from publishkit.releases import ChangesetStatusSource, ReleaseFileSource, ReleaseSource
from publishkit.results import RunResult, TargetResult
from publishkit.targets import registry_display_name, resolve_targets
from publishkit.workspace import MANIFEST_NAME, read_manifest

logger = get_logger(__name__)

# Newline-separated custom registry lines (see custom_registry_credentials).
CUSTOM_REGISTRIES_ENV = 'PUBLISHKIT_CUSTOM_REGISTRIES'
CUSTOM_REGISTRY_TOKEN_ENV = 'PUBLISHKIT_CUSTOM_REGISTRY_TOKEN'

_WORKSPACE_MARKERS = (CONFIG_FILENAME, 'pnpm-workspace.yaml', '.changeset')


def _find_workspace_root(start: Path | None = None) -> Path:
    """Walk up from ``start`` (or CWD) to the workspace root.

    The root is the first directory holding ``publishkit.toml``,
    ``pnpm-workspace.yaml`` or a ``.changeset`` directory.

    Raises:
        PublishKitError: If no workspace root is found.
    """
    cwd = (start or Path.cwd()).resolve()
    for parent in [cwd, *cwd.parents]:
        if any((parent / marker).exists() for marker in _WORKSPACE_MARKERS):
            return parent
    if (cwd / MANIFEST_NAME).is_file():
        return cwd
    raise PublishKitError(
        E.WORKSPACE_NOT_FOUND,
        f'Could not find {CONFIG_FILENAME}, pnpm-workspace.yaml or .changeset above {cwd}.',
        hint='Run publishkit from inside the monorepo or pass --root.',
    )


def _root(args: argparse.Namespace) -> Path:
    return Path(args.root).resolve() if args.root else _find_workspace_root()


def _release_source(args: argparse.Namespace, root: Path, config: PublishKitConfig) -> ReleaseSource:
    if args.release_file:
        return ReleaseFileSource(Path(args.release_file))
    return ChangesetStatusSource(root, config.package_manager)


def _environ() -> Mapping[str, str]:
    """``os.environ`` with custom registry credentials layered on top."""
    lines = os.environ.get(CUSTOM_REGISTRIES_ENV, '').splitlines()
    if not lines:
        return os.environ
    extra = custom_registry_credentials(lines, default_token=os.environ.get(CUSTOM_REGISTRY_TOKEN_ENV))
    return {**os.environ, **extra}


def _attestor(config: PublishKitConfig, root: Path) -> Attestor:
    if config.attestation_command:
        return CommandAttestor(config.attestation_command, cwd=root)
    return NullAttestor()


def _target_status(result: TargetResult) -> Text:
    if result.already_published and result.reason is not None:
        style = 'red' if not result.success else ('yellow' if result.reason.value == 'unknown' else 'green')
        return Text(f'already published ({result.reason.value})', style=style)
    if not result.success:
        return Text('failed', style='red')
    return Text('dry run ok' if result.dry_run else 'published', style='green')


def _print_run(result: RunResult, console: Console) -> None:
    """Render a :class:`RunResult` as tables."""
    if result.abort_reason is not None:
        console.print(Text(f'Aborted ({result.abort_reason.value}): {result.abort_message}', style='bold red'))
        if result.build_output:
            console.print(Text(result.build_output.rstrip(), style='dim'))

    if result.pre_validation is not None:
        table = Table(show_header=True, header_style='bold', show_edge=False, pad_edge=False)
        table.add_column('Package')
        table.add_column('Version')
        table.add_column('Registry')
        table.add_column('Status')
        table.add_column('Detail')
        for item in result.pre_validation.targets:
            style = {'ready': 'green', 'skip': 'yellow', 'error': 'red'}[item.status.value]
            table.add_row(
                item.package_name,
                item.version,
                item.registry_name,
                Text(item.status.value, style=style),
                item.error,
            )
        console.print(table)

    if result.packages:
        table = Table(show_header=True, header_style='bold', show_edge=False, pad_edge=False)
        table.add_column('Package')
        table.add_column('Version')
        table.add_column('Registry')
        table.add_column('Status')
        table.add_column('Detail')
        for package in result.packages:
            for target in package.targets:
                detail = target.error.splitlines()[0] if target.error else (target.registry_url or '')
                table.add_row(package.name, package.version, target.registry_name, _target_status(target), detail)
            if package.attestation_url:
                table.add_row(package.name, package.version, 'attestation', Text('created'), package.attestation_url)
        console.print(table)

    style = 'bold green' if result.success else 'bold red'
    console.print(
        Text(
            f'{result.successful_packages}/{result.total_packages} packages, '
            f'{result.successful_targets}/{result.total_targets} targets'
            + (' (dry run)' if result.dry_run else ''),
            style=style,
        )
    )


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))  # noqa: T201 - CLI output


async def _cmd_publish(args: argparse.Namespace) -> int:
    """Handle the ``publish`` subcommand."""
    root = _root(args)
    config = load_config(root).with_overrides(
        package_manager=args.package_manager,
        concurrency=args.concurrency,
        max_attempts=args.max_attempts,
    )
    entries = await _release_source(args, root, config).releases()
    result = await publish_packages(
        entries,
        root=root,
        config=config,
        dry_run=args.dry_run,
        attestor=_attestor(config, root),
        environ=_environ(),
    )
    if result.cycle_info:
        render_warning(PublishKitWarning(E.GRAPH_CYCLE_DETECTED, result.cycle_info))
    if args.json:
        _print_json(result.to_dict())
    else:
        _print_run(result, Console())
    return 0 if result.success else 1


async def _cmd_order(args: argparse.Namespace) -> int:
    """Handle the ``order`` subcommand."""
    root = _root(args)
    config = load_config(root)
    entries = await _release_source(args, root, config).releases()
    plan = await plan_release(entries, root)
    if plan.cycle_info:
        render_warning(
            PublishKitWarning(
                E.GRAPH_CYCLE_DETECTED,
                plan.cycle_info,
                hint='Packages are published one at a time in release-list order.',
            )
        )
    if args.json:
        _print_json({
            'order': [p.name for p in plan.packages],
            'levels': [[p.name for p in level] for level in plan.levels],
            'cycle_info': plan.cycle_info or None,
            'excluded': plan.excluded,
        })
        return 0
    for index, level in enumerate(plan.levels):
        names = ', '.join(f'{p.name}@{p.version}' for p in level)
        print(f'{index}: {names}')  # noqa: T201 - CLI output
    for name in plan.excluded:
        print(f'-: {name} (excluded)')  # noqa: T201 - CLI output
    return 0


async def _cmd_targets(args: argparse.Namespace) -> int:
    """Handle the ``targets`` subcommand."""
    package_dir = Path(args.package_dir).resolve()
    manifest = await read_manifest(package_dir)
    targets = resolve_targets(package_dir, manifest)
    if args.json:
        _print_json([t.to_dict() for t in targets])
        return 0
    table = Table(show_header=True, header_style='bold', show_edge=False, pad_edge=False)
    table.add_column('Protocol')
    table.add_column('Registry')
    table.add_column('Directory')
    table.add_column('Access')
    table.add_column('Provenance')
    table.add_column('Tag')
    table.add_column('Token env')
    for target in targets:
        table.add_row(
            target.protocol.value,
            registry_display_name(target.registry),
            str(target.directory),
            target.access.value,
            'yes' if target.provenance else 'no',
            target.tag,
            target.token_env or '-',
        )
    console = Console()
    if not targets:
        console.print(f'{manifest.name or package_dir} has no publish targets (private without publishConfig).')
        return 0
    console.print(table)
    return 0


def _cmd_explain(args: argparse.Namespace) -> int:
    """Handle the ``explain`` subcommand."""
    result = explain(args.code)
    if result is None:
        print(f'Unknown error code: {args.code}')  # noqa: T201 - CLI output
        return 1
    print(result)  # noqa: T201 - CLI output
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='publishkit',
        description='Publish monorepo packages to npm-compatible registries and JSR.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging.')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only log warnings and errors.')
    parser.add_argument('--json-log', action='store_true', help='Log one JSON object per line.')

    subparsers = parser.add_subparsers(dest='command')

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument('--root', default=None, help='Workspace root (default: found by walking up from CWD).')
        sub.add_argument('--json', action='store_true', help='Print the result as JSON.')

    publish_parser = subparsers.add_parser(
        'publish',
        help='Publish the release set to every configured target.',
        formatter_class=RichHelpFormatter,
    )
    add_common(publish_parser)
    publish_parser.add_argument(
        '--release-file',
        default=None,
        help='JSON release list to publish instead of asking changesets.',
    )
    publish_parser.add_argument(
        '--dry-run',
        action='store_true',
        help="Use each registry's native dry run; nothing is uploaded.",
    )
    publish_parser.add_argument(
        '--package-manager',
        choices=sorted(PACKAGE_MANAGERS),
        default=None,
        help=f'Package manager (default: from {CONFIG_FILENAME}, else npm).',
    )
    publish_parser.add_argument(
        '--concurrency',
        type=int,
        default=None,
        help='Max packages publishing at once within one rank (default: 1).',
    )
    publish_parser.add_argument(
        '--max-attempts',
        type=int,
        default=None,
        help='Publish attempts per target for network errors (default: 2).',
    )

    order_parser = subparsers.add_parser(
        'order',
        help='Show the publish order and dependency ranks.',
        formatter_class=RichHelpFormatter,
    )
    add_common(order_parser)
    order_parser.add_argument('--release-file', default=None, help='JSON release list.')

    targets_parser = subparsers.add_parser(
        'targets',
        help='Show the resolved publish targets of one package.',
        formatter_class=RichHelpFormatter,
    )
    targets_parser.add_argument('package_dir', help='Package directory containing package.json.')
    targets_parser.add_argument('--json', action='store_true', help='Print the targets as JSON.')

    explain_parser = subparsers.add_parser(
        'explain',
        help='Explain an error code.',
        formatter_class=RichHelpFormatter,
    )
    explain_parser.add_argument('code', help='Error code, e.g. PK-BUILD-FAILED.')

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)

    try:
        command = args.command
        if command == 'publish':
            return asyncio.run(_cmd_publish(args))
        if command == 'order':
            return asyncio.run(_cmd_order(args))
        if command == 'targets':
            return asyncio.run(_cmd_targets(args))
        if command == 'explain':
            return _cmd_explain(args)

        parser.print_help()  # noqa: T201 - CLI output
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except PublishKitError as exc:
        render_error(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
]
