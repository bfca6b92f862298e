# script_runner.py
from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from .errors import ScriptExecutionError
from .model import Package, ScriptResult
from .ui.console import Console

CLIENT_HINTS = {
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "yarn": "Install yarn (e.g., corepack enable) or fix PATH.",
    "pnpm": "Install pnpm (e.g., corepack enable) or fix PATH.",
}

# exit codes a shell uses for "command not found" and "cannot execute"
COMMAND_NOT_FOUND = 127
CANNOT_EXECUTE = 126


class Runner(Protocol):
    """What the Executor needs from whatever actually runs scripts."""

    def run_script(
        self, script: str, *, package: Package, args: Sequence[str], client: str
    ) -> ScriptResult: ...

    def run_script_streaming(
        self, script: str, *, package: Package, args: Sequence[str], client: str, prefix: bool
    ) -> ScriptResult: ...


class ScriptRunner:
    """
    Runs `<client> run <script> [args...]` inside a package directory.

    Buffered calls capture output for the Executor to emit; streaming calls
    write each line to the console as it arrives.
    """

    def __init__(self, console: Console, root: Optional[str | Path] = None):
        self.console = console
        self.root = Path(root).resolve() if root is not None else Path.cwd()

    def _command(self, script: str, args: Sequence[str], client: str) -> List[str]:
        return [client, "run", script, *args]

    def _env(self, package: Package) -> Dict[str, str]:
        env = os.environ.copy()
        env["MONORUN_PACKAGE_NAME"] = package.name
        env["MONORUN_ROOT_PATH"] = str(self.root)
        return env

    def _missing_client(self, script: str, package: Package, client: str) -> ScriptExecutionError:
        hint = CLIENT_HINTS.get(Path(client).name, f"Install {client} or fix PATH.")
        return ScriptExecutionError(
            package=package.name,
            script=script,
            exit_code=COMMAND_NOT_FOUND,
            detail=f"{client} not found. {hint}",
        )

    def _unstartable_client(self, script: str, package: Package, client: str, exc: OSError) -> ScriptExecutionError:
        return ScriptExecutionError(
            package=package.name,
            script=script,
            exit_code=CANNOT_EXECUTE,
            detail=f"could not start {client}: {exc.strerror or exc}",
        )

    def run_script(
        self, script: str, *, package: Package, args: Sequence[str] = (), client: str = "npm"
    ) -> ScriptResult:
        cmd = self._command(script, args, client)
        self.console.print_debug(f"[{package.name}] {' '.join(cmd)}")
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(package.location),
                env=self._env(package),
                text=True,
                encoding="utf-8",
                errors="replace",
                capture_output=True,
            )
        except FileNotFoundError as e:
            raise self._missing_client(script, package, client) from e
        except OSError as e:
            raise self._unstartable_client(script, package, client, e) from e

        return ScriptResult(
            exit_code=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            failed=proc.returncode != 0,
        )

    def run_script_streaming(
        self,
        script: str,
        *,
        package: Package,
        args: Sequence[str] = (),
        client: str = "npm",
        prefix: bool = True,
    ) -> ScriptResult:
        cmd = self._command(script, args, client)
        self.console.print_debug(f"[{package.name}] {' '.join(cmd)}")
        tag = package.name if prefix else None
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(package.location),
                env=self._env(package),
                text=True,
                encoding="utf-8",
                errors="replace",
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise self._missing_client(script, package, client) from e
        except OSError as e:
            raise self._unstartable_client(script, package, client, e) from e

        with proc:
            assert proc.stdout is not None
            for line in proc.stdout:
                self.console.print_package_line(tag, line.rstrip("\n"))
            code = proc.wait()

        return ScriptResult(exit_code=code, failed=code != 0)
