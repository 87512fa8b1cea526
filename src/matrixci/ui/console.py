"""Console output formatting utilities for matrixci."""

from __future__ import annotations

import sys
import threading
from typing import Iterable, Optional, Sequence


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug
        # jobs print from worker threads; keep each block together
        self._lock = threading.Lock()

    def _emit(self, *lines: str, err: bool = False) -> None:
        stream = sys.stderr if err else sys.stdout
        with self._lock:
            for line in lines:
                print(line, file=stream)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(f"\n{title}", "-" * len(title))

    def print_run_started(
        self,
        workflow: str,
        event: str,
        job_count: int,
    ) -> None:
        """Print run start information."""
        self._emit(
            "\nRUN STARTED",
            f"Workflow: {workflow}",
            f"Event: {event}",
            f"Jobs: {job_count}",
            "",
        )

    def print_job_start(self, name: str) -> None:
        """Print job start message."""
        self._emit(f"[{name}] JOB STARTED")

    def print_step(self, job: str, name: str, command: str) -> None:
        """Print step start message."""
        lines = [f"[{job}] ▶ {name}"]
        if self.debug:
            lines.append(f"[{job}]   $ {command}")
        self._emit(*lines)

    def print_step_skipped(self, job: str, name: str, gate: str) -> None:
        self._emit(f"[{job}] ⏭ {name} (skipped: {gate})")

    def print_success(self, job: str) -> None:
        """Print success message."""
        self._emit(f"[{job}] STATUS: success")

    def print_failure(
        self,
        job: str,
        step: str,
        exit_code: Optional[int] = None,
        output: str = "",
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            job: Job name
            step: Name of the step that failed
            exit_code: Optional exit code
            output: Captured output of the failing command (already trimmed)
            hint: Optional hint for user
        """
        lines = [f"[{job}] STEP FAILED: {step}"]
        if exit_code is not None:
            lines.append(f"[{job}] Exit code: {exit_code}")
        if hint:
            lines.append(f"[{job}] Hint: {hint}")
        if output:
            text = output.rstrip()
            if not self.debug:
                # last few lines are usually the interesting ones
                text = "\n".join(text.splitlines()[-20:])
            lines.extend(f"[{job}]   {line}" for line in text.splitlines())
        self._emit(*lines)

    def print_matrix(self, labels: Sequence[str]) -> None:
        """Print the expanded job list."""
        lines = [f"  {label}" for label in labels]
        lines.append(f"\n{len(labels)} job(s)")
        self._emit(*lines)

    def print_plan(self, plans: Iterable) -> None:
        """Print per-job step plan (applicable steps with their resolved commands)."""
        for plan in plans:
            lines = [f"\nJOB: {plan.config.label}"]
            for step in plan.steps:
                if step.applicable:
                    lines.append(f"  ✓ {step.name}: {step.command}")
                else:
                    lines.append(f"  ⏭ {step.name} (skipped: {step.gate})")
            self._emit(*lines)

    def print_results(self, results: Iterable) -> None:
        """Print final results summary."""
        lines = ["\n" + "=" * 40, "RESULTS", "=" * 40]
        for result in results:
            if result.ok:
                lines.append(f"  {result.config.label}: SUCCESS")
            else:
                lines.append(
                    f"  {result.config.label}: FAILED ({result.failed_step}, exit={result.exit_code})"
                )
        self._emit(*lines)

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
        lines = [f"\nERROR: {title}", f"{message}"]
        if details:
            lines.extend(f"  {detail}" for detail in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit(*lines, err=True)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
