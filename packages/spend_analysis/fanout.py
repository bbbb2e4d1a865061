"""Order-preserving concurrent map over a thread pool, in the spirit of ``p-map``.

Used to fan classifier requests out per batch. Callers get results in input
order regardless of completion order, and the pool size caps how many mapper
calls run at once. There is no timeout or cancellation control here; request
timeouts belong to the network client.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
    stop_on_error: bool = True,
) -> list[OutT]:
    """Map ``iterable`` through ``mapper`` with at most ``concurrency`` calls in flight.

    - With ``stop_on_error`` (default) the first mapper exception propagates
      and work that has not started yet is cancelled.
    - Without it, every mapper runs to completion and failures are raised
      together as an ``ExceptionGroup``.
    """

    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    items = list(iterable)
    if not items:
        return []

    results: dict[int, OutT] = {}
    errors: list[Exception] = []
    workers = min(concurrency, len(items))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="spend-analysis") as pool:
        futures: dict[Future[OutT], int] = {
            pool.submit(mapper, item): idx for idx, item in enumerate(items)
        }
        for fut in as_completed(futures):
            idx = futures[fut]
            try:
                results[idx] = fut.result()
            except Exception as e:  # noqa: BLE001
                if stop_on_error:
                    pool.shutdown(wait=False, cancel_futures=True)
                    raise
                errors.append(e)

    if errors:
        raise ExceptionGroup("p_map: one or more mapper calls failed", errors)
    return [results[i] for i in range(len(items))]


__all__ = ["p_map"]
