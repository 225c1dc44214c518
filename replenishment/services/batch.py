"""Bounded-concurrency fan-out with per-item error capture.

A fixed pool of worker coroutines drains a queue of keys. Every key ends up
in exactly one of ``results`` or ``errors``: failures are captured per key,
and keys abandoned by a deadline or cancellation are reported as
BatchTimeoutError rather than silently dropped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from replenishment.core.logging import get_logger
from replenishment.core.metrics import batch_items_in_progress
from replenishment.domain.errors import (
    BATCH_CANCELLED,
    BATCH_TIMEOUT,
    BatchTimeoutError,
    CalculationError,
    CalculationFailedError,
)

log = get_logger("replenishment.batch")

T = TypeVar("T")


@dataclass
class BatchOutcome(Generic[T]):
    """Results and errors keyed by item, plus how the run ended."""

    results: dict[str, T] = field(default_factory=dict)
    errors: dict[str, CalculationError] = field(default_factory=dict)
    timed_out: bool = False
    cancelled: bool = False


async def run_bounded(
    keys: Sequence[str],
    worker: Callable[[str], Awaitable[T]],
    max_concurrency: int,
    timeout: float | None = None,
    cancel_event: asyncio.Event | None = None,
) -> BatchOutcome[T]:
    """Run ``worker`` over ``keys`` with at most ``max_concurrency`` in flight.

    Args:
        keys: Unique item keys (SKUs), dispatched in order
        worker: Coroutine function computing one item
        max_concurrency: Worker pool size (1 = sequential)
        timeout: Overall deadline in seconds (None = none)
        cancel_event: When set, dispatch stops and in-flight items are abandoned

    Returns:
        BatchOutcome with every key in results or errors

    """
    if max_concurrency <= 0:
        raise ValueError("max_concurrency must be positive")

    outcome: BatchOutcome[T] = BatchOutcome()
    if not keys:
        return outcome

    queue: asyncio.Queue[str] = asyncio.Queue()
    for key in keys:
        queue.put_nowait(key)

    async def _drain() -> None:
        while True:
            try:
                key = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            batch_items_in_progress.inc()
            try:
                outcome.results[key] = await worker(key)
            except CalculationError as e:
                outcome.errors[key] = e
            except Exception as e:
                log.exception("batch_item_crashed", extra={"key": key})
                outcome.errors[key] = CalculationFailedError(
                    str(e) or type(e).__name__, details={"exception": type(e).__name__}
                )
            finally:
                batch_items_in_progress.dec()

    workers = {asyncio.create_task(_drain()) for _ in range(min(max_concurrency, len(keys)))}
    stop_waiter = asyncio.create_task(cancel_event.wait()) if cancel_event is not None else None

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout is not None else None

    pending = set(workers)
    try:
        while pending:
            watched = pending | {stop_waiter} if stop_waiter is not None else pending
            remaining = None if deadline is None else max(deadline - loop.time(), 0)
            done, _ = await asyncio.wait(
                watched, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            pending -= done
            if not pending:
                break
            if stop_waiter is not None and stop_waiter in done:
                outcome.cancelled = True
                break
            if not done:
                outcome.timed_out = True
                break
    finally:
        for task in pending:
            task.cancel()
        if stop_waiter is not None:
            stop_waiter.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if stop_waiter is not None:
            await asyncio.gather(stop_waiter, return_exceptions=True)

    if outcome.timed_out or outcome.cancelled:
        code = BATCH_CANCELLED if outcome.cancelled else BATCH_TIMEOUT
        reason = "cancelled" if outcome.cancelled else "deadline exceeded"
        abandoned = [k for k in keys if k not in outcome.results and k not in outcome.errors]
        for key in abandoned:
            outcome.errors[key] = BatchTimeoutError(
                f"Batch {reason} before this item completed", details={"key": key}, code=code
            )
        log.warning(
            "batch_interrupted",
            extra={
                "reason": code,
                "completed": len(outcome.results),
                "abandoned": len(abandoned),
            },
        )

    return outcome
