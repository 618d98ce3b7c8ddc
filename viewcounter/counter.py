"""
Reading and writing "view" events for a tracked identifier.

Counts are a soft display value: any failure while querying reads as zero.
Writes are fire-and-forget; the caller never waits on them.
"""
import logging
import math
import re
import threading
from concurrent.futures import Executor, Future

from .periods import Period

logger = logging.getLogger(__name__)

ID_PATTERN = re.compile(r"[a-z0-9.\-]+")

EVENT_TYPE = "view"
FORWARDED_HEADERS = ("User-Agent", "X-Forwarded-For")


def is_valid_id(value: str | None) -> bool:
    return bool(value) and ID_PATTERN.fullmatch(value) is not None


def count_query(dataset: str, view_id: str) -> str:
    # view_id must already match ID_PATTERN; it is interpolated verbatim
    return (
        f"['{dataset}'] | where eventType == \"{EVENT_TYPE}\" "
        f"| where id == \"{view_id}\" | summarize count()"
    )


def extract_count(result) -> int:
    """
    Pull buckets.totals[0].aggregations[0].value out of a query envelope,
    0 if it isn't there.
    """
    try:
        value = result["buckets"]["totals"][0]["aggregations"][0]["value"]
    except (KeyError, IndexError, TypeError):
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(int(value), 0)


def build_view_event(view_id: str, method: str, headers) -> dict:
    return {
        "eventType": EVENT_TYPE,
        "id": view_id,
        "metadata": {
            "method": method,
            "headers": {name: headers.get(name) for name in FORWARDED_HEADERS},
        },
    }


class ViewCounter:
    def __init__(self, backend, dataset: str, executor: Executor, max_pending: int | None = None):
        self.backend = backend
        self.dataset = dataset
        self.executor = executor
        # ingests submitted but not finished; None means no cap
        self._pending = threading.BoundedSemaphore(max_pending) if max_pending else None

    def count_views(self, view_id: str, unit: str, length: int, now=None) -> int:
        if not is_valid_id(view_id):
            return 0
        try:
            window = Period(unit=unit, length=length).window(now)
            result = self.backend.query(count_query(self.dataset, view_id), window)
            return extract_count(result)
        except Exception as exc:
            logger.debug("view count for %s failed, reporting 0: %r", view_id, exc)
            return 0

    def record_view(self, view_id: str, request) -> Future | None:
        """
        Queue one ingest of a view event and return without waiting.
        Request data is copied here since the request is gone by the time
        the pool gets to it. When max_pending ingests are already in flight
        the view is dropped and None is returned.
        """
        if self._pending is not None and not self._pending.acquire(blocking=False):
            logger.warning("Failed to add view id=%s cause=ingest queue full", view_id)
            return None

        event = build_view_event(view_id, request.method, request.headers)
        try:
            future = self.executor.submit(self.backend.ingest, self.dataset, [event])
        except Exception:
            self._release()
            raise
        future.add_done_callback(lambda f: self._ingest_done(view_id, f))
        return future

    def _release(self):
        if self._pending is not None:
            self._pending.release()

    def _ingest_done(self, view_id: str, future: Future):
        self._release()
        if future.cancelled():
            logger.warning("Failed to add view id=%s cause=cancelled", view_id)
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Failed to add view id=%s cause=%r", view_id, exc)
