"""Timing capture for rule evaluations.

Runs a zero-argument coroutine function repeatedly and records the
wall-clock duration of every call in milliseconds, using
``time.perf_counter``.  Sampling stops when the iteration budget is
spent or when the cumulative time since measurement started passes the
time budget.  The budget only prevents the next call from starting; a
call that is already running is never interrupted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from rulebench.bench.config import WarmupConfig

log = logging.getLogger("rulebench")

# A unit of measured work: one rule evaluation over one code sample.
Work = Callable[[], Awaitable[object]]


# ---------------------------------------------------------------------------
# SampleRun
# ---------------------------------------------------------------------------


@dataclass
class SampleRun:
    """Raw timings collected for one piece of work."""

    samples: list[float] = field(default_factory=list)  # milliseconds
    aborted: bool = False
    error: str | None = None
    warmup_runs: int = 0

    @property
    def total_ms(self) -> float:
        """Sum of all measured durations."""
        return sum(self.samples)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


# ---------------------------------------------------------------------------
# Core sampling loop
# ---------------------------------------------------------------------------


async def collect_samples(
    work: Work,
    *,
    iterations: int,
    timeout_ms: float,
    warmup: WarmupConfig | None = None,
) -> SampleRun:
    """Measure *work* until one of the budgets is exhausted.

    Args:
        work: Coroutine function performing one evaluation.
        iterations: Maximum number of measured calls.
        timeout_ms: Time budget in milliseconds, counted from the start
            of measurement (warm-up is not included).
        warmup: Optional warm-up policy; warm-up timings are discarded.

    Returns:
        SampleRun with the collected timings.  If *work* raises, the run
        is marked aborted, ``error`` holds the message, and the timings
        recorded before the failure are kept.
    """
    run = SampleRun()

    if warmup is not None and warmup.enabled:
        for _ in range(warmup.iterations):
            try:
                await work()
            except Exception as exc:  # noqa: BLE001
                run.aborted = True
                run.error = str(exc) or type(exc).__name__
                log.debug("Warm-up call failed: %s", run.error)
                return run
            run.warmup_runs += 1

    measure_start = time.perf_counter()
    # At least one measured call is always made, whatever the budgets say.
    while True:
        call_start = time.perf_counter()
        try:
            await work()
        except Exception as exc:  # noqa: BLE001
            run.aborted = True
            run.error = str(exc) or type(exc).__name__
            log.debug("Measured call %d failed: %s", len(run.samples) + 1, run.error)
            break
        run.samples.append(_elapsed_ms(call_start))

        if len(run.samples) >= iterations:
            break
        if _elapsed_ms(measure_start) > timeout_ms:
            break

    return run
