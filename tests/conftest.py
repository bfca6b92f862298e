"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import json
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from monorun.errors import ScriptExecutionError
from monorun.model import Package, ScriptResult
from monorun.ui.console import Console


def make_packages(spec: Dict[str, Iterable[str]], scripts: Iterable[str] = ("env",)) -> List[Package]:
    """Build packages from {name: [deps...]} in dict order, all declaring `scripts`."""
    return [
        Package(
            name=name,
            location=Path("/workspace/packages") / name,
            scripts=frozenset(scripts),
            dependencies=tuple(deps),
        )
        for name, deps in spec.items()
    ]


class FakeRunner:
    """
    Stands in for ScriptRunner.

    Buffered calls print the package name (like `echo $MONORUN_PACKAGE_NAME`).
    `failures` maps package name -> exit code; `raises` makes the call raise
    ScriptExecutionError instead of returning a failed result.
    """

    def __init__(self, failures: Optional[Dict[str, int]] = None, raises: bool = False):
        self.failures = dict(failures or {})
        self.raises = raises
        self.calls: List[dict] = []
        self.events: List[tuple] = []  # ("start"|"end", name)
        self._lock = threading.Lock()

    @property
    def started(self) -> List[str]:
        return [name for kind, name in self.events if kind == "start"]

    def _record(self, kind: str, name: str) -> None:
        with self._lock:
            self.events.append((kind, name))

    def _result(self, script: str, package: Package, stdout: str) -> ScriptResult:
        code = self.failures.get(package.name)
        if code is None:
            return ScriptResult(exit_code=0, stdout=stdout)
        if self.raises:
            raise ScriptExecutionError(package=package.name, script=script, exit_code=code, output=stdout)
        return ScriptResult(exit_code=code, stdout=stdout, failed=True)

    def run_script(self, script: str, *, package: Package, args: Sequence[str], client: str) -> ScriptResult:
        self._record("start", package.name)
        with self._lock:
            self.calls.append({"mode": "buffered", "script": script, "package": package.name,
                               "args": list(args), "client": client})
        try:
            return self._result(script, package, package.name)
        finally:
            self._record("end", package.name)

    def run_script_streaming(
        self, script: str, *, package: Package, args: Sequence[str], client: str, prefix: bool
    ) -> ScriptResult:
        self._record("start", package.name)
        with self._lock:
            self.calls.append({"mode": "streaming", "script": script, "package": package.name,
                               "args": list(args), "client": client, "prefix": prefix})
        try:
            return self._result(script, package, "")
        finally:
            self._record("end", package.name)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def console() -> Console:
    return Console(out=io.StringIO(), err=io.StringIO())


def logged(console: Console) -> List[str]:
    """Package output lines written to the console's out stream."""
    text = console.out.getvalue().strip("\n")
    return text.split("\n") if text else []


def log_text(console: Console) -> str:
    return console.err.getvalue()


def write_package(root: Path, name: str, *, scripts: Optional[Dict[str, str]] = None,
                  dependencies: Optional[Dict[str, str]] = None,
                  dev_dependencies: Optional[Dict[str, str]] = None,
                  folder: Optional[str] = None) -> Path:
    directory = root / "packages" / (folder or name)
    directory.mkdir(parents=True, exist_ok=True)
    manifest = {"name": name, "version": "1.0.0"}
    if scripts:
        manifest["scripts"] = scripts
    if dependencies:
        manifest["dependencies"] = dependencies
    if dev_dependencies:
        manifest["devDependencies"] = dev_dependencies
    (directory / "package.json").write_text(json.dumps(manifest, indent=2))
    return directory


@pytest.fixture
def basic_workspace(tmp_path: Path) -> Path:
    """
    package-1  (my-script, fail)
    package-2  -> package-1
    package-3  -> package-2   (my-script)
    package-4
    """
    (tmp_path / "package.json").write_text(json.dumps({"name": "root", "private": True}))
    write_package(tmp_path, "package-1", scripts={"my-script": "echo package-1", "fail": "exit 1"})
    write_package(tmp_path, "package-2", dependencies={"package-1": "^1.0.0"})
    write_package(tmp_path, "package-3", scripts={"my-script": "echo package-3"},
                  dependencies={"package-2": "^1.0.0"})
    write_package(tmp_path, "package-4")
    return tmp_path
