# config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .errors import ValidationError

WORKSPACE_FILE = "monorun.json"
DEFAULT_PACKAGE_GLOBS = ["packages/*"]
DEFAULT_NPM_CLIENT = "npm"


def default_concurrency() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


# -------------------- Schemas --------------------

class RunConfig(BaseModel):
    """
    Every option `run` understands, validated once.

    Unknown keys are rejected, so a typo in monorun.json fails loudly instead
    of being ignored.
    """
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    script: str = ""
    args: List[str] = Field(default_factory=list)
    concurrency: int = Field(default_factory=default_concurrency, ge=1)
    sort: bool = True
    parallel: bool = False
    stream: bool = False
    prefix: bool = True
    bail: bool = True
    reject_cycles: bool = False
    profile: bool = False
    profile_location: Optional[Path] = None
    npm_client: str = Field(default=DEFAULT_NPM_CLIENT, min_length=1)
    scope: List[str] = Field(default_factory=list)
    ignore: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_combinations(self) -> RunConfig:
        if self.profile_location is not None and not self.profile:
            raise ValueError("--profile-location requires --profile")
        return self

    @property
    def streaming(self) -> bool:
        # --parallel always streams
        return self.stream or self.parallel

    @property
    def sorted_execution(self) -> bool:
        return self.sort and not self.parallel


class WorkspaceConfig(BaseModel):
    """Contents of monorun.json at the workspace root."""
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    packages: Optional[List[str]] = None
    npm_client: Optional[str] = None
    command: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    def run_defaults(self) -> Dict[str, Any]:
        """Options for `run` from the file; CLI flags are layered on top."""
        defaults = dict(self.command.get("run", {}))
        if self.npm_client and "npmClient" not in defaults and "npm_client" not in defaults:
            defaults["npmClient"] = self.npm_client
        return defaults


def build_run_config(defaults: Optional[Dict[str, Any]] = None, **options: Any) -> RunConfig:
    """
    Merge file defaults with explicit options and validate.

    pydantic errors are turned into ValidationError so callers only deal with
    monorun's own error types.
    """
    merged: Dict[str, Any] = {}
    for key, value in (defaults or {}).items():
        merged[_field_name(key)] = value
    merged.update(options)

    try:
        return RunConfig(**merged)
    except pydantic.ValidationError as e:
        problems = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err.get("loc", ())) or "config"
            problems.append(f"{loc}: {err.get('msg')}")
        raise ValidationError("EINVALIDCONFIG", "Invalid run configuration: " + "; ".join(problems)) from e


def _field_name(key: str) -> str:
    for name, info in RunConfig.model_fields.items():
        if key == name or key == info.alias:
            return name
    return key


def load_workspace_config(root: Path) -> WorkspaceConfig:
    """Read monorun.json from `root`; a missing file means all defaults."""
    path = root / WORKSPACE_FILE
    if not path.exists():
        return WorkspaceConfig()
    try:
        return WorkspaceConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except pydantic.ValidationError as e:
        raise ValidationError("EWORKSPACE", f"Invalid {WORKSPACE_FILE} at {path}: {e}") from e
