from .config import RunConfig, build_run_config
from .cycles import find_cycles
from .errors import CycleError, RunError, ScriptExecutionError, ValidationError
from .graph import PackageGraph
from .model import ExecutionTask, Package, RunResult, ScriptResult
from .run_command import RunCommand
from .scheduler import build_eligibility

__all__ = [
    "RunConfig",
    "build_run_config",
    "find_cycles",
    "CycleError",
    "RunError",
    "ScriptExecutionError",
    "ValidationError",
    "PackageGraph",
    "ExecutionTask",
    "Package",
    "RunResult",
    "ScriptResult",
    "RunCommand",
    "build_eligibility",
]
