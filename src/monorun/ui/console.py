"""Console output formatting utilities for monorun."""

from __future__ import annotations

import sys
import threading
from typing import Optional, TextIO


class Console:
    """
    Centralized output sink.

    Package output (the scripts' own stdout) goes to `out`; everything monorun
    says about the run goes to `err`, so piping stdout yields only script output.
    """

    def __init__(
        self,
        debug: bool = False,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
    ):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            out: Stream for package output (defaults to sys.stdout at write time)
            err: Stream for log lines (defaults to sys.stderr at write time)
        """
        self.debug = debug
        self._out = out
        self._err = err
        self._lock = threading.Lock()

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err if self._err is not None else sys.stderr

    # ---- package output ----

    def print_package_output(self, text: str, *, stderr: bool = False) -> None:
        """Emit one package's buffered output as a whole."""
        text = text.rstrip("\n")
        if not text:
            return
        with self._lock:
            print(text, file=self.err if stderr else self.out)

    def print_package_line(self, prefix: Optional[str], line: str) -> None:
        """Emit one streamed line, tagged with the package name unless prefix is None."""
        with self._lock:
            if prefix:
                print(f"{prefix}: {line}", file=self.out)
            else:
                print(line, file=self.out)

    # ---- log lines ----

    def _log(self, *lines: str) -> None:
        # same lock as package output so log lines never split a streamed line
        with self._lock:
            for line in lines:
                print(line, file=self.err)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._log(f"info {message}")

    def print_success(self, message: str) -> None:
        """Print success message."""
        self._log(f"success {message}")

    def print_warning(self, code: str, message: str) -> None:
        """Print warning message (multi-line messages keep their line breaks)."""
        self._log(f"WARN {code} {message}")

    def print_results(self, script: str, names: list[str], elapsed: float) -> None:
        """Print final results summary."""
        noun = "package" if len(names) == 1 else "packages"
        self._log(
            f"success Ran script \"{script}\" in {len(names)} {noun} in {elapsed:.1f}s:",
            *(f"success - {name}" for name in names),
        )

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        lines.extend(f"  {detail}" for detail in details or [])
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._log(*lines)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            self._log("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip("\n"))
        else:
            self._log(f"Error: {exc}")

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._log(f"[DEBUG] {message}")
