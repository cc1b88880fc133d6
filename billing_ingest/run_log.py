"""
Per-run log collection and the outcome shown to the operator
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, TypedDict


class RunOutcome(TypedDict):
    """Result of one stage run."""

    success: bool
    message: str
    logs: str


class RunLog:
    """Collects the log lines of a single stage run.

    Every line is timestamped and echoed to the console as it is written.
    Nothing is filtered; the full text is handed back to the operator.
    """

    def __init__(
        self,
        echo: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.lines: list[str] = []
        self.echo = echo
        self._clock = clock

    def log(self, message: str) -> None:
        line: str = f"[{self._clock().strftime('%H:%M:%S')}] {message}"
        self.lines.append(line)
        if self.echo:
            print(line)

    def warn(self, message: str) -> None:
        self.log(f"⚠ {message}")

    def error(self, message: str) -> None:
        self.log(f"✗ {message}")

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def outcome(self, success: bool, message: str) -> RunOutcome:
        return {"success": success, "message": message, "logs": self.text}
