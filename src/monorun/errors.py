# errors.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False)
class RunError(Exception):
    """
    Structured run error with enough context for:
      - clean CLI output
      - a process exit code without touching global state
    """
    code: str
    message: str

    def __str__(self) -> str:
        return self.message

    @property
    def exit_code(self) -> int:
        return 1


class ValidationError(RunError):
    """Bad input caught before any graph or task work."""

    def __init__(self, code: str, message: str):
        super().__init__(code=code, message=message)


class CycleError(RunError):
    """Dependency cycles found while cycles are being rejected."""

    def __init__(self, message: str):
        super().__init__(code="ECYCLE", message=message)


class ScriptExecutionError(RunError):
    """A package's script exited non-zero or the runner reported failure."""

    def __init__(self, package: str, script: str, exit_code: int, output: str = "", detail: str | None = None):
        message = f"Errored while running script \"{script}\" in package \"{package}\" (exit={exit_code})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(code="ELIFECYCLE", message=message)
        self.package = package
        self.script = script
        self.output = output
        self._exit_code = exit_code
        self.result = None  # set to the RunResult once the run settles

    @property
    def exit_code(self) -> int:
        return self._exit_code
