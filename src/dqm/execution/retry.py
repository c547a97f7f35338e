"""Retry strategies with exponential backoff.

Used by the workflow runner for steps that declare a retry policy (the
query steps). The runner owns the sleep; ``RetryContext`` only counts
attempts and hands out delays.

Example:
    >>> from dqm.execution.retry import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(max_retries=6, base_delay=2.0)
    >>> [strategy.next_delay(n) for n in range(3)]
    [2.0, 4.0, 8.0]
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, retry: int) -> float:
        """Delay in seconds before zero-based retry number ``retry``."""
        ...

    @abstractmethod
    def should_retry(self, retry: int) -> bool:
        """Whether another retry is allowed after ``retry`` retries."""
        ...


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff.

    Delay = min(base_delay * (multiplier ** retry), max_delay)

    Attributes:
        max_retries: Maximum number of retries after the first attempt
        base_delay: Delay before the first retry in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0

    def next_delay(self, retry: int) -> float:
        return min(self.base_delay * (self.multiplier ** retry), self.max_delay)

    def should_retry(self, retry: int) -> bool:
        return retry < self.max_retries


@dataclass
class NoRetry(RetryStrategy):
    """No retry - fail immediately."""

    def next_delay(self, retry: int) -> float:
        return 0.0

    def should_retry(self, retry: int) -> bool:
        return False


@dataclass
class RetryContext:
    """Retry bookkeeping for one step execution."""

    strategy: RetryStrategy
    attempts: int = field(default=0, init=False)
    retries: int = field(default=0, init=False)
    delays: list[float] = field(default_factory=list, init=False)

    def record_attempt(self) -> None:
        self.attempts += 1

    def should_retry(self) -> bool:
        return self.strategy.should_retry(self.retries)

    def next_delay(self) -> float:
        return self.strategy.next_delay(self.retries)

    def record_retry(self, delay: float) -> None:
        """Record that a retry is about to happen after ``delay`` seconds."""
        self.delays.append(delay)
        self.retries += 1
