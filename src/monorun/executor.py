# executor.py
from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Optional, Tuple

from .config import RunConfig
from .errors import ScriptExecutionError
from .model import ExecutionTask, RunResult, ScriptResult, TaskState
from .profiler import ProfileRecorder
from .scheduler import Eligibility
from .script_runner import Runner
from .ui.console import Console

_Outcome = Tuple[ScriptResult, float, float]


class Executor:
    """
    Bounded worker pool driven by a single scheduling loop.

    Only script invocations run on worker threads. The loop owns the
    eligibility model, the in-flight map, task state, buffered output and
    the profiler, so none of them need locking.
    """

    def __init__(self, console: Console, profiler: Optional[ProfileRecorder] = None):
        self.console = console
        self.profiler = profiler

    def run(self, eligibility: Eligibility, config: RunConfig, runner: Runner) -> RunResult:
        tasks: Dict[str, ExecutionTask] = {
            name: ExecutionTask(package=pkg) for name, pkg in eligibility.packages.items()
        }
        result = RunResult(tasks=tasks)
        if not tasks:
            return result

        first_failure: Optional[ScriptExecutionError] = None
        last_failure: Optional[ScriptExecutionError] = None
        in_flight: Dict[Future, ExecutionTask] = {}

        with ThreadPoolExecutor(max_workers=config.concurrency) as pool:
            while eligibility.has_ready() or in_flight:
                # fill the pool with whatever is eligible right now
                while (
                    eligibility.has_ready()
                    and len(in_flight) < config.concurrency
                    and not (config.bail and first_failure is not None)
                ):
                    name = eligibility.take()
                    task = tasks[name]
                    task.start()
                    if self.profiler:
                        self.profiler.on_start(name)
                    fut = pool.submit(self._invoke, task, config, runner)
                    in_flight[fut] = task

                if not in_flight:
                    break

                # wait for one completion, then loop to schedule newly-eligible packages
                fut = next(as_completed(list(in_flight.keys())))
                task = in_flight.pop(fut)
                script_result, started_at, ended_at = fut.result()
                task.complete(script_result, started_at=started_at, ended_at=ended_at)

                if self.profiler:
                    self.profiler.on_end(task.name, task)

                if not config.streaming:
                    self.console.print_package_output(script_result.stdout)
                    self.console.print_package_output(script_result.stderr, stderr=True)

                if task.failed:
                    err = ScriptExecutionError(
                        package=task.name,
                        script=config.script,
                        exit_code=task.exit_code or 1,
                        output=task.output,
                    )
                    if config.bail:
                        if first_failure is None:
                            first_failure = err
                            self.console.print_debug(f"{task.name} failed, no new packages will start")
                    else:
                        last_failure = err
                        self.console.print_debug(f"{task.name} failed (exit={err.exit_code}), continuing")

                eligibility.mark_done(task.name)

        if first_failure is not None:
            result.error = first_failure
            result.exit_code = first_failure.exit_code
        elif last_failure is not None:
            result.exit_code = last_failure.exit_code
        elif eligibility.remaining:
            stuck = [n for n, t in tasks.items() if t.state is TaskState.PENDING]
            raise RuntimeError(f"Scheduler stalled; never eligible: {stuck}")

        return result

    @staticmethod
    def _invoke(task: ExecutionTask, config: RunConfig, runner: Runner) -> _Outcome:
        started_at = time.perf_counter()
        try:
            if config.streaming:
                res = runner.run_script_streaming(
                    config.script,
                    package=task.package,
                    args=config.args,
                    client=config.npm_client,
                    prefix=config.prefix,
                )
            else:
                res = runner.run_script(
                    config.script,
                    package=task.package,
                    args=config.args,
                    client=config.npm_client,
                )
        except ScriptExecutionError as e:
            res = ScriptResult(exit_code=e.exit_code, stdout=e.output, stderr=e.message, failed=True)
        except Exception as e:
            # anything else the runner throws fails this package only
            res = ScriptResult(exit_code=1, stderr=f"{type(e).__name__}: {e}", failed=True)
        return res, started_at, time.perf_counter()
