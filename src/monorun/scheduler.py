# scheduler.py
from __future__ import annotations

from collections import deque
from typing import AbstractSet, Dict, List, Optional, Set

from .graph import Edge, PackageGraph
from .model import Package


class Eligibility:
    """
    Incremental "who may start now" model consumed by the Executor.

    Each package waits on a set of dependency names; it becomes eligible when
    that set is empty. Eligible packages are handed out first-come
    first-served, and packages that become eligible together are queued in
    filtered-list order.
    """

    def __init__(self, graph: PackageGraph, waiting_on: Dict[str, Set[str]]):
        self.graph = graph
        self._waiting = {name: set(waiting_on.get(name, ())) for name in graph}
        self._dependents: Dict[str, List[str]] = {name: [] for name in graph}
        for name, deps in self._waiting.items():
            for dep in deps:
                self._dependents[dep].append(name)

        self._ready = deque(name for name in graph if not self._waiting[name])
        self._queued: Set[str] = set(self._ready)
        self._done: Set[str] = set()

    @property
    def packages(self) -> Dict[str, Package]:
        return self.graph.packages

    @property
    def remaining(self) -> int:
        """Packages not yet completed (queued, waiting, or in flight)."""
        return len(self._waiting) - len(self._done)

    def has_ready(self) -> bool:
        return bool(self._ready)

    def take(self) -> Optional[str]:
        if not self._ready:
            return None
        return self._ready.popleft()

    def waiting_on(self, name: str) -> Set[str]:
        return set(self._waiting[name])

    def mark_done(self, name: str) -> List[str]:
        """Record completion; return the packages it made eligible."""
        if name in self._done:
            return []
        self._done.add(name)

        unlocked: List[str] = []
        for nxt in self._dependents[name]:
            waiting = self._waiting[nxt]
            waiting.discard(name)
            if not waiting and nxt not in self._queued:
                unlocked.append(nxt)

        unlocked.sort(key=self.graph.index_of)
        self._ready.extend(unlocked)
        self._queued.update(unlocked)
        return unlocked


def build_eligibility(
    graph: PackageGraph,
    break_edges: AbstractSet[Edge] = frozenset(),
    sort_enabled: bool = True,
    parallel: bool = False,
) -> Eligibility:
    """
    Convert a (possibly cyclic) graph into an eligibility model.

      - parallel: everything eligible at once, dependencies ignored
      - unsorted: everything eligible, handed out in filtered-list order
      - sorted: wait on every dependency edge that is not a break-edge
    """
    if parallel or not sort_enabled:
        return Eligibility(graph, {})

    waiting_on = {
        name: {dep for dep in graph.dependencies_of(name) if (name, dep) not in break_edges}
        for name in graph
    }
    return Eligibility(graph, waiting_on)
