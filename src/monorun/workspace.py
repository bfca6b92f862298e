# workspace.py
from __future__ import annotations

import json
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import DEFAULT_PACKAGE_GLOBS, WorkspaceConfig, load_workspace_config
from .errors import ValidationError
from .model import Package

MANIFEST = "package.json"

DEPENDENCY_FIELDS = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
    "peerDependencies",
)


# ----------------------------------------------------------------------
# Manifest loading
# ----------------------------------------------------------------------

def _read_manifest(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError("EJSON", f"Could not parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError("EJSON", f"{path} must contain a JSON object")
    return data


def load_package(directory: Path) -> Package:
    """
    Load one package from <directory>/package.json.

    Dependencies keep their declaration order across the dependency fields;
    a name listed in several fields is kept once.
    """
    manifest_path = directory / MANIFEST
    data = _read_manifest(manifest_path)

    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError("ENONAME", f"Package at {directory} has no \"name\" in {MANIFEST}")

    deps: List[str] = []
    for field_name in DEPENDENCY_FIELDS:
        for dep in (data.get(field_name) or {}):
            if dep not in deps:
                deps.append(dep)

    scripts = data.get("scripts") or {}
    return Package(
        name=name,
        location=directory.resolve(),
        scripts=frozenset(scripts),
        dependencies=tuple(deps),
        version=data.get("version"),
    )


# ----------------------------------------------------------------------
# Discovery
# ----------------------------------------------------------------------

def package_globs(root: Path, config: Optional[WorkspaceConfig] = None) -> List[str]:
    """
    Where packages live, in priority order:
      - monorun.json "packages"
      - root package.json "workspaces" (list, or {"packages": [...]})
      - packages/*
    """
    config = config or load_workspace_config(root)
    if config.packages:
        return list(config.packages)

    root_manifest = root / MANIFEST
    if root_manifest.exists():
        workspaces = _read_manifest(root_manifest).get("workspaces")
        if isinstance(workspaces, dict):
            workspaces = workspaces.get("packages")
        if isinstance(workspaces, list) and workspaces:
            return [str(w) for w in workspaces]

    return list(DEFAULT_PACKAGE_GLOBS)


def discover_packages(root: str | Path, globs: Optional[Sequence[str]] = None) -> List[Package]:
    """
    Find every package under the workspace root.

    Returns:
      Packages sorted by location, which is the "filtered-list order" the
      scheduler falls back on.
    """
    root_p = Path(root).expanduser().resolve()
    if not root_p.is_dir():
        raise ValidationError("ENOWORKSPACE", f"Workspace root not found: {root_p}")

    patterns = list(globs) if globs is not None else package_globs(root_p)

    dirs: List[Path] = []
    seen = set()
    for pat in patterns:
        pat = pat.strip().rstrip("/")
        if not pat:
            continue
        for match in sorted(root_p.glob(pat)):
            if not (match / MANIFEST).is_file():
                continue
            key = str(match.resolve())
            if key not in seen:
                seen.add(key)
                dirs.append(match)

    packages = [load_package(d) for d in sorted(dirs, key=lambda d: str(d.resolve()))]
    return packages


# ----------------------------------------------------------------------
# Filtering (--scope / --ignore)
# ----------------------------------------------------------------------

def _matches_any(name: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch(name, p) for p in patterns)


def filter_packages(
    packages: Sequence[Package],
    *,
    scope: Sequence[str] = (),
    ignore: Sequence[str] = (),
) -> List[Package]:
    """
    Keep packages matching any --scope pattern (all if none given), then drop
    those matching any --ignore pattern. Order is preserved.
    """
    selected: List[Package] = []
    for pkg in packages:
        if scope and not _matches_any(pkg.name, scope):
            continue
        if ignore and _matches_any(pkg.name, ignore):
            continue
        selected.append(pkg)
    return selected
