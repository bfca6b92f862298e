# cycles.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Union

from .graph import Edge, PackageGraph

CYCLE_HEADER = "Dependency cycles detected, you should fix these!"

_ON_PATH = 1
_DONE = 2


@dataclass(eq=False)
class Cycle:
    """
    A closed dependency walk.

    `path` is the walk as discovered, starting and ending at the DFS ancestor.
    `tokens` is what gets rendered: package names, or earlier cycles that this
    walk passes through (shown as nested references instead of re-expanded).
    """
    path: List[str]
    tokens: List[Union[str, "Cycle"]]
    members: FrozenSet[str] = field(default_factory=frozenset)

    def render(self) -> str:
        parts = [
            f"(nested cycle: {t.render()})" if isinstance(t, Cycle) else t
            for t in self.tokens
        ]
        parts.append(parts[0])
        return " -> ".join(parts)

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class CycleReport:
    cycles: List[Cycle]
    break_edges: FrozenSet[Edge]

    def __bool__(self) -> bool:
        return bool(self.cycles)

    @property
    def message(self) -> str:
        if not self.cycles:
            return ""
        return "\n".join([CYCLE_HEADER] + [c.render() for c in self.cycles])


def find_cycles(graph: PackageGraph) -> CycleReport:
    """
    Find dependency cycles with a DFS over the filtered-list order.

    Every back-edge (closing node -> ancestor on the current path) is a
    break-edge: removing all of them leaves an acyclic graph, while the
    reported cycles still describe the original, unbroken structure.
    """
    state: Dict[str, int] = {}
    cycles: List[Cycle] = []
    owner: Dict[str, Cycle] = {}  # package -> outermost reported cycle containing it
    break_edges: List[Edge] = []

    for root in graph.names:
        if root in state:
            continue

        state[root] = _ON_PATH
        path = [root]
        pending = [iter(graph.dependencies_of(root))]

        while pending:
            node = path[-1]
            dep = next(pending[-1], None)

            if dep is None:
                pending.pop()
                path.pop()
                state[node] = _DONE
                continue

            mark = state.get(dep)
            if mark is None:
                state[dep] = _ON_PATH
                path.append(dep)
                pending.append(iter(graph.dependencies_of(dep)))
            elif mark == _ON_PATH:
                break_edges.append((node, dep))
                cycle = _collapse(path[path.index(dep):], owner)
                if cycle is not None:
                    cycles.append(cycle)
                    for name in cycle.members:
                        owner[name] = cycle

    return CycleReport(cycles=cycles, break_edges=frozenset(break_edges))


def _collapse(walk: List[str], owner: Dict[str, Cycle]) -> Optional[Cycle]:
    tokens: List[Union[str, Cycle]] = []
    for name in walk:
        earlier = owner.get(name)
        if earlier is None:
            tokens.append(name)
        elif not tokens or tokens[-1] is not earlier:
            tokens.append(earlier)

    # the walk is closed, so a run may wrap from the end back to the start
    if len(tokens) > 1 and isinstance(tokens[0], Cycle) and tokens[0] is tokens[-1]:
        tokens.pop()

    if len(tokens) == 1 and isinstance(tokens[0], Cycle):
        # a shortcut inside an already reported cycle
        return None

    start = next((i for i, t in enumerate(tokens) if isinstance(t, str)), 0)
    tokens = tokens[start:] + tokens[:start]

    members = set(walk)
    for t in tokens:
        if isinstance(t, Cycle):
            members |= t.members

    return Cycle(path=walk + [walk[0]], tokens=tokens, members=frozenset(members))
