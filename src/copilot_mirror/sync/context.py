"""Per-run context threaded through every sync component.

A ``RunContext`` carries what would otherwise be process-wide state: the
run start time and deadline, the categories observed successfully, and
whether the remote signalled a rate limit.  Components receive it as an
explicit argument, so tests can build one with a fake clock and sleeper.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from copilot_mirror.errors import TimeoutExceeded


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunContext:
    """Mutable state for one sync run.

    Attributes:
        budget: Run-wide time budget in seconds (``None`` = unbounded).
        dry_run: Plan only; nothing is written.
        clock: Monotonic clock, injectable for tests.
        sleeper: Sleep function, injectable for tests.
    """

    budget: float | None = None
    dry_run: bool = False
    clock: Callable[[], float] = time.monotonic
    sleeper: Callable[[float], None] = time.sleep
    started_at: datetime = field(default_factory=_utc_now)
    successful_categories: list[str] = field(default_factory=list)
    failed_categories: list[str] = field(default_factory=list)
    rate_limited: bool = False
    timed_out: bool = False

    def __post_init__(self) -> None:
        self._start = self.clock()

    @property
    def run_id(self) -> str:
        """Timestamp identifier, safe for file names."""
        return self.started_at.strftime("%Y%m%dT%H%M%S%fZ")

    def elapsed(self) -> float:
        return self.clock() - self._start

    def remaining(self) -> float | None:
        if self.budget is None:
            return None
        return self.budget - self.elapsed()

    def check_deadline(self) -> None:
        """Raise ``TimeoutExceeded`` once the budget is spent."""
        if self.budget is None:
            return
        elapsed = self.elapsed()
        if elapsed >= self.budget:
            self.timed_out = True
            raise TimeoutExceeded(elapsed, self.budget)

    def sleep(self, seconds: float) -> None:
        """Sleep for *seconds* unless that would overrun the deadline."""
        self.check_deadline()
        remaining = self.remaining()
        if remaining is not None and seconds >= remaining:
            self.timed_out = True
            raise TimeoutExceeded(self.elapsed() + seconds, self.budget or 0.0)
        self.sleeper(seconds)

    def request_timeout(self, default: float) -> float:
        """Per-request timeout clipped to the time left in the run."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return max(0.1, min(default, remaining))

    def mark_successful(self, category: str) -> None:
        if category not in self.successful_categories:
            self.successful_categories.append(category)

    def mark_failed(self, category: str) -> None:
        """Record *category* as failed; an interrupted category loses success."""
        if category in self.successful_categories:
            self.successful_categories.remove(category)
        if category not in self.failed_categories:
            self.failed_categories.append(category)

    def note_rate_limited(self) -> None:
        self.rate_limited = True
