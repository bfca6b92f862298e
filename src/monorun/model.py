# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from .errors import ScriptExecutionError


@dataclass(frozen=True)
class Package:
    """
    One workspace package: identity + declared scripts + declared dependencies.

    `dependencies` keeps declaration order and may name packages outside the
    workspace; the graph decides which of them become edges.
    """
    name: str
    location: Path
    scripts: frozenset[str] = frozenset()
    dependencies: tuple[str, ...] = ()
    version: str | None = None

    def has_script(self, script: str) -> bool:
        return script in self.scripts


@dataclass(frozen=True)
class ScriptResult:
    """What a runner reports back for one package."""
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    failed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and self.exit_code == 0


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass
class ExecutionTask:
    """
    One package's script invocation.

    State only moves forward: pending -> running -> completed.
    """
    package: Package
    state: TaskState = TaskState.PENDING
    exit_code: Optional[int] = None
    output: str = ""
    failed: bool = False
    started_at: Optional[float] = None
    ended_at: Optional[float] = None

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def duration(self) -> float:
        if self.started_at is None or self.ended_at is None:
            return 0.0
        return max(0.0, self.ended_at - self.started_at)

    def start(self) -> None:
        if self.state is not TaskState.PENDING:
            raise RuntimeError(f"Task '{self.name}' cannot start from state {self.state.value}")
        self.state = TaskState.RUNNING

    def complete(self, result: ScriptResult, *, started_at: float, ended_at: float) -> None:
        if self.state is not TaskState.RUNNING:
            raise RuntimeError(f"Task '{self.name}' cannot complete from state {self.state.value}")
        self.state = TaskState.COMPLETED
        self.exit_code = result.exit_code
        self.output = result.stdout
        self.failed = not result.ok
        self.started_at = started_at
        self.ended_at = ended_at


@dataclass
class RunResult:
    """Aggregate outcome of one `run` invocation."""
    exit_code: int = 0
    error: Optional[ScriptExecutionError] = None
    tasks: Dict[str, ExecutionTask] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.error is None

    @property
    def completed(self) -> list[str]:
        """Names of packages whose script ran, in completion order."""
        done = [t for t in self.tasks.values() if t.state is TaskState.COMPLETED]
        return [t.name for t in sorted(done, key=lambda t: t.ended_at or 0.0)]

    @property
    def failures(self) -> list[ExecutionTask]:
        return [t for t in self.tasks.values() if t.failed]
