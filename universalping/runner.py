"""Sequential ping cycle over the configured endpoints."""

import logging
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from .config import DEFAULT_USER_AGENT, PRIVACY_NONE
from .models import CycleReport, ProbeOutcome
from .privacy import mask_endpoint
from .prober import probe

logger = logging.getLogger(__name__)


def _log_outcome(outcome: ProbeOutcome, display: str, timeout_ms: int) -> None:
    """Log one outcome at a level matching its severity."""
    if outcome.succeeded:
        logger.info(
            "Ping successful for %s (status: %d, response time: %dms)",
            display,
            outcome.status_code,
            outcome.elapsed_ms,
        )
    elif outcome.status_code is not None:
        logger.warning(
            "Ping failed for %s (status: %d, response time: %dms)",
            display,
            outcome.status_code,
            outcome.elapsed_ms,
        )
    elif outcome.timed_out:
        logger.error("Timeout for %s after %dms", display, timeout_ms)
    else:
        logger.error(
            "Ping error for %s: %s (response time: %dms)",
            display,
            outcome.failure_reason,
            outcome.elapsed_ms,
        )


def run_cycle(
    endpoints: Sequence[str],
    timeout_ms: int,
    delay_ms: int,
    privacy_mode: str = PRIVACY_NONE,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    sleep: Callable[[float], object] = time.sleep,
    positions: Sequence[int] | None = None,
) -> CycleReport:
    """Probe every endpoint once, in order, and summarize the results.

    Requests are never sent in parallel. After each request, the last one
    included, the cycle waits delay_ms so consecutive cycles stay spaced out
    as well.

    Args:
        endpoints: Validated endpoints in configuration order.
        timeout_ms: Per-request timeout in milliseconds.
        delay_ms: Pause after each request in milliseconds (0 disables it).
        privacy_mode: How endpoints are rendered in log lines.
        user_agent: User-Agent header sent with every request.
        sleep: Callable used for the pause, taking seconds.
        positions: 0-based positions of the endpoints in the configured list,
            used to name them in full privacy mode. Defaults to list order.

    Returns:
        CycleReport with outcomes in endpoint order.

    Raises:
        ValueError: If positions and endpoints differ in length.
    """
    if positions is None:
        positions = range(len(endpoints))
    elif len(positions) != len(endpoints):
        raise ValueError(f"Got {len(positions)} positions for {len(endpoints)} endpoints")

    started_at = datetime.now(UTC)
    start = time.monotonic()
    logger.info("Starting ping cycle for %d endpoint(s)...", len(endpoints))

    outcomes: list[ProbeOutcome] = []
    for position, endpoint in zip(positions, endpoints):
        outcome = probe(endpoint, timeout_ms, user_agent=user_agent)
        outcomes.append(outcome)
        _log_outcome(outcome, mask_endpoint(endpoint, privacy_mode, position), timeout_ms)

        if delay_ms > 0:
            sleep(delay_ms / 1000)

    report = CycleReport(
        outcomes=tuple(outcomes),
        started_at=started_at,
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    logger.info(
        "Ping summary: %d successful, %d failed, average response time: %dms",
        report.success_count,
        report.failure_count,
        round(report.average_elapsed_ms),
    )
    return report
