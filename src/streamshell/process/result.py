"""Process execution result dataclass."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ProcessResult:
    """Result of running an external command.

    Attributes:
        command: The command that was executed (argv joined with spaces).
        exit_status: Process exit status (0 = success), or None if killed/timeout.
        output: Filtered stdout, or trimmed stderr when stdout yielded nothing.
        status: Execution status - "ok", "error", "timeout", or "killed".
        signal: Signal name if process was killed (e.g., "SIGKILL").
        duration_ms: Execution duration in milliseconds.
    """

    command: str
    exit_status: int | None
    output: str
    status: str  # "ok", "error", "timeout", "killed"
    signal: str | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """True if command completed with exit status 0."""
        return self.exit_status == 0

    def __repr__(self) -> str:
        if self.success:
            lines = self.output.count("\n") + 1 if self.output else 0
            return f"<ProcessResult ok, {lines} lines>"
        return f"<ProcessResult {self.status}, exit={self.exit_status}>"
