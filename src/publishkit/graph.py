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

"""Publish ordering for the packages of one release.

Orders the release set so that every package is published after the
siblings it depends on, detects cycles, and groups the order into
ranks that may be published concurrently.

Key Concepts (ELI5)::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                            │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Edges                   │ edges["plugin"] = {"core"} means plugin    │
    │                         │ needs core on the registry first.          │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Topological sort        │ An ordering where every package comes      │
    │                         │ after all its dependencies.                │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Rank                    │ Packages whose dependencies all sit in     │
    │                         │ earlier ranks. A rank can be published     │
    │                         │ in parallel.                               │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Cycle fallback          │ If A needs B and B needs A there is no     │
    │                         │ valid order. Keep the caller's order and   │
    │                         │ warn instead of giving up.                 │
    └─────────────────────────┴─────────────────────────────────────────────┘

Only edges between names in the release set count. A dependency on a
package that is not being released is already on the registry.

Usage::

    from publishkit.graph import sort_packages, publish_levels

    result = sort_packages(['app', 'core'], {'app': {'core'}})
    assert result.ordered == ['core', 'app']
    levels = publish_levels(result.ordered, edges)
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping, Sequence, Set
from dataclasses import dataclass

from publishkit.logging import get_logger

logger = get_logger(__name__)

Edges = Mapping[str, Set[str]]


@dataclass(frozen=True)
class SortResult:
    """Outcome of :func:`sort_packages`.

    Attributes:
        ordered: Publish order. On a cycle, the caller's input order.
        ok: ``False`` when a cycle was found.
        cycle_info: Human-readable cycle description, empty when ``ok``.
    """

    ordered: list[str]
    ok: bool = True
    cycle_info: str = ''


def _restrict(names: Sequence[str], edges: Edges) -> dict[str, list[str]]:
    """Return per-name dependency lists limited to ``names``, in input order."""
    present = set(names)
    return {
        name: [dep for dep in names if dep in edges.get(name, ()) and dep in present]
        for name in names
    }


def detect_cycles(names: Sequence[str], edges: Edges) -> list[list[str]]:
    """Find dependency cycles among ``names`` using DFS.

    Args:
        names: Package names in the release set.
        edges: ``edges[p]`` is the set of names ``p`` depends on.

    Returns:
        A list of cycles, each a list of names that starts and ends on
        the same package (``['a', 'b', 'a']``). Empty when acyclic.
    """
    deps = _restrict(names, edges)
    _white, _gray, _black = 0, 1, 2
    color: dict[str, int] = dict.fromkeys(deps, _white)
    parent: dict[str, str | None] = dict.fromkeys(deps)
    cycles: list[list[str]] = []

    def _dfs(node: str) -> None:
        color[node] = _gray
        for neighbor in deps[node]:
            if color[neighbor] == _gray:
                # Back edge; walk parents to reconstruct the loop.
                cycle = [neighbor]
                current = node
                while current != neighbor:
                    cycle.append(current)
                    p = parent.get(current)
                    if p is None:
                        break
                    current = p
                cycle.append(neighbor)
                cycle.reverse()
                cycles.append(cycle)
            elif color[neighbor] == _white:
                parent[neighbor] = node
                _dfs(neighbor)
        color[node] = _black

    for name in deps:
        if color[name] == _white:
            _dfs(name)
    return cycles


def sort_packages(names: Sequence[str], edges: Edges) -> SortResult:
    """Order ``names`` so dependencies precede dependents (Kahn's algorithm).

    Ready packages are taken in input order, so the output is stable
    for a given input order and edge set.

    Args:
        names: Package names for this run.
        edges: ``edges[p]`` is the set of names ``p`` depends on. Names
            outside ``names`` are ignored. A name missing from ``edges``
            has no dependencies.

    Returns:
        A :class:`SortResult`. On a cycle, ``ordered`` is ``names``
        unchanged, ``ok`` is ``False`` and ``cycle_info`` names the
        packages involved.
    """
    original = list(names)
    names = list(dict.fromkeys(original))
    if len(names) <= 1:
        return SortResult(ordered=original)

    deps = _restrict(names, edges)
    in_degree = {name: len(deps[name]) for name in names}
    dependents: dict[str, list[str]] = {name: [] for name in names}
    for name in names:
        for dep in deps[name]:
            dependents[dep].append(name)

    queue: deque[str] = deque(name for name in names if in_degree[name] == 0)
    ordered: list[str] = []
    while queue:
        name = queue.popleft()
        ordered.append(name)
        for dependent in dependents[name]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(ordered) != len(names):
        done = set(ordered)
        remaining = [name for name in names if name not in done]
        info = f'Circular dependency detected involving: {", ".join(remaining)}'
        cycles = detect_cycles(remaining, edges)
        if cycles:
            info += f' ({" → ".join(cycles[0])})'
        logger.warning('dependency_cycle', packages=remaining)
        return SortResult(ordered=original, ok=False, cycle_info=info)

    logger.debug('publish_order', order=ordered)
    return SortResult(ordered=ordered)


def publish_levels(ordered: Sequence[str], edges: Edges, *, ok: bool = True) -> list[list[str]]:
    """Group an already sorted order into ranks.

    A package's rank is one more than the highest rank among its
    in-set dependencies. Within a rank, names keep their order from
    ``ordered``.

    Args:
        ordered: Output of :func:`sort_packages`.
        edges: The same edge mapping passed to :func:`sort_packages`.
        ok: ``SortResult.ok``. When ``False`` there is no valid rank
            assignment, so every package gets its own rank and the run
            degrades to strictly sequential publishing in the given order.

    Returns:
        A list of ranks, each a list of names.
    """
    if not ok:
        return [[name] for name in ordered]

    deps = _restrict(ordered, edges)
    rank: dict[str, int] = {}
    for name in ordered:
        rank[name] = 1 + max((rank[dep] for dep in deps[name]), default=-1)

    levels: list[list[str]] = [[] for _ in range(max(rank.values(), default=-1) + 1)]
    for name in ordered:
        levels[rank[name]].append(name)
    return levels


__all__ = [
    'Edges',
    'SortResult',
    'detect_cycles',
    'publish_levels',
    'sort_packages',
]
