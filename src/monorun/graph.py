# graph.py
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from .errors import ValidationError
from .model import Package

Edge = Tuple[str, str]  # (dependent, dependency)


class PackageGraph:
    """
    Directed graph of intra-workspace dependencies.

    Nodes are the filtered packages in their filtered-list order. An edge
    (dependent, dependency) exists only when both ends are in the set;
    dependencies outside the run's scope are dropped without complaint.
    """

    def __init__(self, packages: Sequence[Package]):
        names = [p.name for p in packages]
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValidationError("EDUPLICATE", f"Duplicate package names found: {dupes}")

        self.packages: Dict[str, Package] = {p.name: p for p in packages}
        self._index: Dict[str, int] = {name: i for i, name in enumerate(names)}

        deps: Dict[str, List[str]] = {n: [] for n in names}    # dependent -> dependencies
        dependents: Dict[str, List[str]] = {n: [] for n in names}  # dependency -> dependents

        for pkg in packages:
            for dep in pkg.dependencies:
                # outside the filtered set, or a package naming itself
                if dep not in self._index or dep == pkg.name:
                    continue
                if dep not in deps[pkg.name]:
                    deps[pkg.name].append(dep)
                    dependents[dep].append(pkg.name)

        # edge lookups follow filtered-list order so every walk is deterministic
        self._deps = {n: sorted(d, key=self._index.__getitem__) for n, d in deps.items()}
        self._dependents = {n: sorted(d, key=self._index.__getitem__) for n, d in dependents.items()}

    @classmethod
    def build(cls, packages: Iterable[Package]) -> PackageGraph:
        return cls(list(packages))

    @property
    def names(self) -> List[str]:
        return list(self.packages)

    def index_of(self, name: str) -> int:
        return self._index[name]

    def dependencies_of(self, name: str) -> List[str]:
        return list(self._deps[name])

    def dependents_of(self, name: str) -> List[str]:
        return list(self._dependents[name])

    def edges(self) -> Iterator[Edge]:
        for name in self.packages:
            for dep in self._deps[name]:
                yield name, dep

    def __contains__(self, name: object) -> bool:
        return name in self.packages

    def __iter__(self) -> Iterator[str]:
        return iter(self.packages)

    def __len__(self) -> int:
        return len(self.packages)
