import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, List, Optional, TypeVar

from django.db import close_old_connections

from apps.messaging.conf import get_setting

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


def fan_out(func: Callable[[T], R], items: Iterable[T], workers: Optional[int] = None) -> List[Optional[R]]:
    """
    Run `func` over `items` concurrently and wait for all of them.

    A failing item is logged and yields None; it never stops its siblings.
    Results come back in completion order.
    """
    items = list(items)
    workers = workers if workers is not None else get_setting('FANOUT_WORKERS')

    if workers <= 1 or len(items) <= 1:
        return [_guarded(func, item) for item in items]

    def run(item):
        try:
            return _guarded(func, item)
        finally:
            close_old_connections()

    results = []
    with ThreadPoolExecutor(max_workers=min(workers, len(items))) as pool:
        futures = [pool.submit(run, item) for item in items]
        for future in as_completed(futures):
            results.append(future.result())
    return results


def _guarded(func, item):
    try:
        return func(item)
    except Exception as exc:
        logger.error(f"Fan-out item {item!r} failed: {exc}", exc_info=True)
        return None
