"""DQM Execution — resilience primitives shared by the workflow runner.

ARCHITECTURE
────────────
::

    RetryStrategy      ─ ExponentialBackoff / NoRetry
    RetryContext       ─ per-operation retry bookkeeping (attempts, delays)
    DeadlineContext    ─ overall execution budget, caps waits to time left
    TimeoutExpired     ─ raised when the budget is spent
"""

from dqm.execution.retry import ExponentialBackoff, NoRetry, RetryContext, RetryStrategy
from dqm.execution.timeout import DeadlineContext, TimeoutExpired

__all__ = [
    "DeadlineContext",
    "ExponentialBackoff",
    "NoRetry",
    "RetryContext",
    "RetryStrategy",
    "TimeoutExpired",
]
