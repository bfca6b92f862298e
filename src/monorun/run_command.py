# run_command.py
from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional, Sequence

from .config import RunConfig
from .cycles import find_cycles
from .errors import CycleError, ValidationError
from .executor import Executor
from .graph import PackageGraph
from .model import Package, RunResult
from .profiler import ProfileRecorder
from .scheduler import build_eligibility
from .script_runner import Runner, ScriptRunner
from .ui.console import Console

# npm provides `env` to every package whether or not it declares it
ALWAYS_AVAILABLE_SCRIPTS = frozenset({"env"})


def require_script(script: str) -> None:
    if not script:
        raise ValidationError("ENOSCRIPT", "You must specify a lifecycle script to run")


class RunCommand:
    """
    One `run <script>` lifecycle:

      Validate -> Graph -> CyclePolicy -> Schedule -> Execute -> Aggregate -> Report

    `packages` is the already scoped/ignored list; its order is the
    filtered-list order used for tie-breaks and for --no-sort.
    """

    def __init__(
        self,
        config: RunConfig,
        packages: Sequence[Package],
        *,
        runner: Optional[Runner] = None,
        console: Optional[Console] = None,
        cwd: Optional[str | Path] = None,
    ):
        self.config = config
        self.packages = list(packages)
        self.console = console or Console()
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.runner = runner or ScriptRunner(self.console, root=self.cwd)

    def run(self) -> RunResult:
        """
        Returns:
          RunResult; exit_code is non-zero only for --no-bail failures.

        Raises:
          ValidationError: no script given
          CycleError: cycles found with --reject-cycles
          ScriptExecutionError: a script failed in bail mode (after in-flight tasks settle)
        """
        self._validate()

        candidates = self._packages_with_script()
        if not candidates:
            self.console.print_success(
                f"No packages found with the lifecycle script \"{self.config.script}\""
            )
            return RunResult()

        graph = PackageGraph.build(candidates)

        report = find_cycles(graph)
        if report:
            if self.config.reject_cycles:
                raise CycleError(report.message)
            self.console.print_warning("ECYCLE", report.message)

        eligibility = build_eligibility(
            graph,
            report.break_edges,
            sort_enabled=self.config.sort,
            parallel=self.config.parallel,
        )

        noun = "package" if len(graph) == 1 else "packages"
        self.console.print_info(
            f"Executing script \"{self.config.script}\" in {len(graph)} {noun}"
            f" (concurrency={self.config.concurrency}, sorted={self.config.sorted_execution})"
        )

        profiler = ProfileRecorder(self.config.concurrency) if self.config.profile else None
        started = time.perf_counter()
        result = Executor(self.console, profiler).run(eligibility, self.config, self.runner)
        elapsed = time.perf_counter() - started

        if profiler is not None:
            location = self.config.profile_location
            if location is not None and not Path(location).is_absolute():
                location = self.cwd / location
            path = profiler.flush(location if location is not None else self.cwd)
            self.console.print_info(f"Performance profile saved to {path}")

        return self._report(result, elapsed)

    def _validate(self) -> None:
        require_script(self.config.script)

    def _packages_with_script(self) -> List[Package]:
        script = self.config.script
        if script in ALWAYS_AVAILABLE_SCRIPTS:
            return list(self.packages)
        return [p for p in self.packages if p.has_script(script)]

    def _report(self, result: RunResult, elapsed: float) -> RunResult:
        if result.error is not None:
            err = result.error
            err.result = result
            self.console.print_error(
                "Script failed",
                str(err),
                details=[f"exit code: {err.exit_code}"],
            )
            raise err

        if result.exit_code != 0:
            failed = [t.name for t in result.failures]
            self.console.print_error(
                "Script failed",
                f"Received non-zero exit code {result.exit_code} during execution",
                details=[f"failed: {', '.join(failed)}"],
            )
            return result

        self.console.print_results(self.config.script, result.completed, elapsed)
        return result
