"""Per-package execution spans written as Chrome trace events."""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .model import ExecutionTask

PROFILE_PREFIX = "Monorun-Profile"


def profile_output_path(location: str | Path | None = None) -> Path:
    """
    Build the profile file path.

    Args:
        location: Output directory (defaults to the current working directory)

    Returns:
        <location>/Monorun-Profile-<UTC timestamp digits>.json
    """
    directory = Path(location) if location is not None else Path.cwd()
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    return directory.expanduser().resolve() / f"{PROFILE_PREFIX}-{stamp}.json"


class ProfileRecorder:
    """
    Collects one complete ("X") trace event per executed package.

    Thread ids are concurrency slots: a task takes the lowest free slot when
    it starts and gives it back when it ends, so overlapping tasks never
    share a tid.
    """

    PID = 1

    def __init__(self, concurrency: int):
        self.events: List[dict] = []
        self._origin = time.perf_counter()
        self._free_slots = list(range(max(1, concurrency)))
        self._slots: Dict[str, int] = {}

    def on_start(self, name: str) -> None:
        if not self._free_slots:
            # more overlap than declared concurrency; open another lane
            self._free_slots.append(len(self._slots) + len(self._free_slots))
        self._slots[name] = self._free_slots.pop(0)

    def on_end(self, name: str, task: ExecutionTask) -> None:
        slot = self._slots.pop(name)
        started = task.started_at if task.started_at is not None else self._origin
        self.events.append({
            "name": name,
            "ph": "X",
            "ts": round(max(0.0, started - self._origin) * 1_000_000, 3),
            "pid": self.PID,
            "tid": slot,
            "dur": round(task.duration * 1_000_000, 3),
        })
        self._free_slots.append(slot)
        self._free_slots.sort()

    def flush(self, location: Optional[str | Path] = None) -> Path:
        out = profile_output_path(location)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(self.events, indent=2), encoding="utf-8")
        return out
