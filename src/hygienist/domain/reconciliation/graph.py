"""Dependency graph over plan changes.

Edges point from a change to the changes it depends on. Selecting a change pulls
in its forward closure (everything it needs); deselecting one drops its reverse
closure (everything that needs it).
"""

from __future__ import annotations

import heapq
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .plan import Change


@dataclass(slots=True)
class DependencyGraph:
    _order: list[str] = field(default_factory=list["str"], repr=False)
    _depends_on: dict[str, list[str]] = field(default_factory=dict["str", "list[str]"], repr=False)
    _dependents: dict[str, list[str]] = field(default_factory=dict["str", "list[str]"], repr=False)

    @classmethod
    def from_changes(cls, changes: Iterable[Change]) -> DependencyGraph:
        graph = cls()
        collected = list(changes)
        for change in collected:
            graph.add_node(change.id)
        for change in collected:
            for dependency in change.depends_on:
                graph.add_edge(change.id, dependency)
        graph.validate()
        return graph

    @property
    def nodes(self) -> tuple[str, ...]:
        return tuple(self._order)

    def __contains__(self, node: object) -> bool:
        return node in self._depends_on

    def add_node(self, node: str) -> None:
        if node in self._depends_on:
            raise ValidationError(f"Duplicate change id {node!r}")
        self._order.append(node)
        self._depends_on[node] = []
        self._dependents[node] = []

    def add_edge(self, node: str, dependency: str) -> None:
        """Record that ``node`` depends on ``dependency``."""

        for endpoint in (node, dependency):
            if endpoint not in self._depends_on:
                raise ValidationError(f"Unknown change id {endpoint!r}")
        if node == dependency:
            raise ValidationError(f"Change {node!r} depends on itself")
        if dependency not in self._depends_on[node]:
            self._depends_on[node].append(dependency)
            self._dependents[dependency].append(node)

    def dependencies(self, node: str) -> tuple[str, ...]:
        self._require(node)
        return tuple(self._depends_on[node])

    def dependents(self, node: str) -> tuple[str, ...]:
        self._require(node)
        return tuple(self._dependents[node])

    def forward_closure(self, node: str) -> frozenset[str]:
        """``node`` plus every change it transitively depends on."""

        return self._closure(node, self._depends_on)

    def reverse_closure(self, node: str) -> frozenset[str]:
        """``node`` plus every change that transitively depends on it."""

        return self._closure(node, self._dependents)

    def select(self, selected: Iterable[str]) -> frozenset[str]:
        closed: set[str] = set()
        for node in selected:
            closed |= self.forward_closure(node)
        return frozenset(closed)

    def deselect(self, selected: Iterable[str], removed: Iterable[str]) -> frozenset[str]:
        remaining = set(selected)
        for node in removed:
            remaining -= self.reverse_closure(node)
        return frozenset(remaining)

    def topological_order(self, nodes: Iterable[str] | None = None) -> list[str]:
        """Kahn order restricted to ``nodes``, ties broken by insertion order."""

        wanted = set(self._order if nodes is None else nodes)
        for node in wanted:
            self._require(node)
        position = {node: index for index, node in enumerate(self._order)}
        pending = {
            node: sum(1 for dep in self._depends_on[node] if dep in wanted) for node in wanted
        }
        ready = [(position[node], node) for node, count in pending.items() if count == 0]
        heapq.heapify(ready)
        ordered: list[str] = []
        while ready:
            _, node = heapq.heappop(ready)
            ordered.append(node)
            for dependent in self._dependents[node]:
                if dependent not in wanted:
                    continue
                pending[dependent] -= 1
                if pending[dependent] == 0:
                    heapq.heappush(ready, (position[dependent], dependent))
        if len(ordered) != len(wanted):
            done = set(ordered)
            stuck = sorted(node for node in wanted if node not in done)
            raise ValidationError(f"Dependency cycle among changes: {', '.join(stuck)}")
        return ordered

    def validate(self) -> None:
        self.topological_order()

    def _closure(self, node: str, edges: dict[str, list[str]]) -> frozenset[str]:
        self._require(node)
        seen = {node}
        queue = deque([node])
        while queue:
            current = queue.popleft()
            for neighbour in edges[current]:
                if neighbour not in seen:
                    seen.add(neighbour)
                    queue.append(neighbour)
        return frozenset(seen)

    def _require(self, node: str) -> None:
        if node not in self._depends_on:
            raise ValidationError(f"Unknown change id {node!r}")
