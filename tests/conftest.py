"""
Shared fixtures: a fake Axiom backend and an app wired to it.
"""
import threading
from concurrent.futures import Executor, Future

import pytest

from viewcounter.app import create_app
from viewcounter.config import Settings


class FakeBackend:
    """Records calls; set query_error / ingest_error to make them fail."""

    def __init__(self, count=0):
        self.count = count
        self.query_error = None
        self.ingest_error = None
        self.queries = []
        self.ingested = []
        self._lock = threading.Lock()

    def query(self, apl, window):
        with self._lock:
            self.queries.append((apl, window))
        if self.query_error:
            raise self.query_error
        return {"buckets": {"totals": [{"aggregations": [{"op": "count", "value": self.count}]}]}}

    def ingest(self, dataset, events):
        with self._lock:
            self.ingested.append((dataset, events))
        if self.ingest_error:
            raise self.ingest_error
        return {"ingested": len(events), "failed": 0}


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


@pytest.fixture
def settings():
    return Settings(
        axiom_token="xaat-test",
        axiom_org_id="org-test",
        axiom_dataset="views-test",
    )


@pytest.fixture
def backend():
    return FakeBackend(count=7)


@pytest.fixture
def app(settings, backend):
    app = create_app(settings, backend=backend, executor=InlineExecutor())
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
