"""Deadline tracking for execution control.

A workflow execution has one overall time budget. ``DeadlineContext``
tracks it against a monotonic clock, caps waits to the time left, and
raises ``TimeoutExpired`` once the budget is spent.

Blocking collaborator calls are never interrupted. The deadline is
checked between steps and before every wait.

Examples:
    >>> from dqm.execution.timeout import DeadlineContext, TimeoutExpired
    >>>
    >>> deadline = DeadlineContext.start(300.0, operation="beta-content-provider")
    >>> deadline.cap(30.0)
    30.0
    >>> deadline.check()  # raises TimeoutExpired once 300s have passed

Tags:
    timeout, deadline, resilience, execution
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field


class TimeoutExpired(TimeoutError):
    """Raised when an operation exceeds its deadline.

    Inherits from built-in TimeoutError for broad exception handling.

    Attributes:
        timeout: The timeout value that was exceeded
        elapsed: How long the operation ran before the check
        operation: Name/description of the operation
    """

    def __init__(
        self,
        timeout: float,
        elapsed: float | None = None,
        operation: str = "operation",
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation

        msg = f"Operation '{operation}' timed out after {timeout}s"

        if elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"

        super().__init__(msg)


@dataclass
class DeadlineContext:
    """Context for tracking deadline state.

    Attributes:
        deadline: Absolute deadline timestamp (on ``clock``)
        timeout_seconds: Original timeout value in seconds
        operation: Name/description of the operation
        start_time: When the deadline context started
        clock: Monotonic time source, injectable for tests
    """

    deadline: float
    timeout_seconds: float
    operation: str = "operation"
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    start_time: float | None = None

    def __post_init__(self) -> None:
        if self.start_time is None:
            self.start_time = self.clock()

    @classmethod
    def start(
        cls,
        seconds: float,
        operation: str = "operation",
        clock: Callable[[], float] = time.monotonic,
    ) -> DeadlineContext:
        """Begin a deadline of ``seconds`` from now."""
        if seconds <= 0:
            raise ValueError(f"Timeout must be positive, got {seconds}")
        now = clock()
        return cls(
            deadline=now + seconds,
            timeout_seconds=seconds,
            operation=operation,
            clock=clock,
            start_time=now,
        )

    def remaining(self) -> float:
        """Remaining time until deadline in seconds.

        Returns:
            Positive value if time remains, zero or negative if expired.
        """
        return self.deadline - self.clock()

    @property
    def elapsed(self) -> float:
        """Elapsed time since start in seconds."""
        return self.clock() - self.start_time

    def is_expired(self) -> bool:
        """True if deadline has passed."""
        return self.clock() >= self.deadline

    def cap(self, seconds: float) -> float:
        """Clamp a wait so it never runs past the deadline."""
        return max(0.0, min(seconds, self.remaining()))

    def check(self, op_name: str | None = None) -> None:
        """Check if deadline expired and raise if so.

        Raises:
            TimeoutExpired: If deadline has passed
        """
        if self.is_expired():
            raise TimeoutExpired(
                timeout=self.timeout_seconds,
                elapsed=self.elapsed,
                operation=op_name or self.operation,
            )
