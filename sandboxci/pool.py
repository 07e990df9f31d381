from __future__ import annotations

import concurrent.futures as _fut
import threading
from typing import Callable, List, Sequence, TypeVar


T = TypeVar("T")
R = TypeVar("R")


class Cancelled(Exception):
    """Raised inside a worker that was asked to stop before it started."""


def run_all(func: Callable[[T], R], items: Sequence[T], jobs: int = 1) -> List[R]:
    """Apply ``func`` to every item and return results in input order.

    With ``jobs <= 1`` items are processed one after another. Otherwise a
    bounded thread pool is used; once any call raises, a shared stop event
    keeps the remaining workers from starting and the first real exception is
    re-raised to the caller.
    """
    if jobs <= 1 or len(items) <= 1:
        return [func(item) for item in items]

    stop = threading.Event()

    def _guarded(item: T) -> R:
        if stop.is_set():
            raise Cancelled()
        try:
            return func(item)
        except BaseException:
            stop.set()
            raise

    results: List[R] = []
    first_error: BaseException | None = None
    with _fut.ThreadPoolExecutor(max_workers=int(jobs)) as ex:
        futures = [ex.submit(_guarded, item) for item in items]
        for fut in futures:
            if first_error is not None:
                fut.cancel()
                continue
            try:
                results.append(fut.result())
            except Cancelled:
                # the worker that tripped the stop event is still ahead of us
                continue
            except BaseException as exc:
                first_error = exc
    if first_error is not None:
        raise first_error
    return results
