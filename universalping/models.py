"""Data models for ping outcomes and cycle reports."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of a single request to one endpoint.

    Attributes:
        endpoint: The endpoint URL exactly as configured.
        succeeded: True if a response arrived in time with a status in [200, 400).
        status_code: HTTP status code, or None if no response was received.
        elapsed_ms: Milliseconds from dispatch until the outcome was known.
        failure_reason: Error description when no status code was obtained, None otherwise.
    """

    endpoint: str
    succeeded: bool
    status_code: int | None
    elapsed_ms: int
    failure_reason: str | None = None

    def __post_init__(self) -> None:
        if (self.status_code is None) == (self.failure_reason is None):
            raise ValueError("Exactly one of status_code and failure_reason must be set")
        if self.succeeded and self.status_code is None:
            raise ValueError("A successful outcome requires a status code")
        if self.elapsed_ms < 0:
            raise ValueError(f"elapsed_ms must be non-negative (got {self.elapsed_ms})")

    @property
    def timed_out(self) -> bool:
        """Whether the request was aborted by the timeout."""
        return self.failure_reason == TIMEOUT_REASON


# Failure reason recorded when a request exceeds its timeout.
TIMEOUT_REASON = "Request timeout"


@dataclass(frozen=True)
class CycleReport:
    """Aggregate over one sequential pass of all endpoints.

    Attributes:
        outcomes: Probe outcomes in endpoint configuration order.
        started_at: UTC timestamp when the cycle started.
        duration_ms: Wall time of the whole cycle, delays included.
    """

    outcomes: tuple[ProbeOutcome, ...]
    started_at: datetime
    duration_ms: int = 0

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.outcomes) - self.success_count

    @property
    def average_elapsed_ms(self) -> float:
        """Mean elapsed time over all outcomes, failed ones included (0.0 when empty)."""
        if not self.outcomes:
            return 0.0
        return sum(outcome.elapsed_ms for outcome in self.outcomes) / len(self.outcomes)

    @property
    def all_succeeded(self) -> bool:
        return bool(self.outcomes) and self.failure_count == 0
