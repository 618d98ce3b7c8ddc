"""
Minimal client for the two Axiom endpoints the counter needs:
APL queries and event ingestion.
"""
import logging
from urllib.parse import quote

import requests

from .periods import TimeWindow

logger = logging.getLogger(__name__)


class AxiomError(Exception):
    def __init__(self, status: int, body: str):
        super().__init__(f"Axiom responded {status}: {body[:200]}")
        self.status = status
        self.body = body


class AxiomClient:
    """
    One long-lived instance per process. requests.Session keeps the
    connection pool and is safe to share between the request threads and
    the ingest pool.
    """

    def __init__(self, token: str, org_id: str, url: str = "https://api.axiom.co",
                 timeout: float = 10.0, session: requests.Session | None = None):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "X-Axiom-Org-Id": org_id,
            "Accept": "application/json",
        })

    @classmethod
    def from_settings(cls, settings) -> "AxiomClient":
        return cls(
            token=settings.axiom_token,
            org_id=settings.axiom_org_id,
            url=settings.axiom_url,
            timeout=settings.axiom_timeout,
        )

    def _post(self, path: str, payload, params=None) -> requests.Response:
        resp = self.session.post(
            f"{self.url}{path}",
            json=payload,
            params=params,
            timeout=self.timeout,
        )
        if not resp.ok:
            raise AxiomError(resp.status_code, resp.text)
        return resp

    def query(self, apl: str, window: TimeWindow) -> dict:
        """
        Run an APL query and return the decoded legacy-format envelope:
          {"buckets": {"totals": [{"aggregations": [{"value": 42}]}]}, ...}
        """
        payload = {"apl": apl, **window.as_params()}
        return self._post("/v1/datasets/_apl", payload, params={"format": "legacy"}).json()

    def ingest(self, dataset: str, events: list[dict]) -> dict:
        resp = self._post(f"/v1/datasets/{quote(dataset, safe='')}/ingest", events)
        logger.debug("ingested %d event(s) into %s", len(events), dataset)
        return resp.json() if resp.content else {}
