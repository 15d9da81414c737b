from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from netwatch.cache import PersistentCache
from netwatch.config import Settings
from netwatch.reference import ReferenceData
from netwatch.services import build_services
from netwatch.store import MemoryStore

OONI_URL = "https://ooni.test/api/v1"
IODA_URL = "https://ioda.test/v2"
CF_URL = "https://cf.test/radar"
RIPE_URL = "https://ripe.test/api/v2"
TELEMETRY_URL = "https://telemetry.test/report"


# =============================================================================
# FAKES
# =============================================================================

class FakeClock:
    """Monotonic fake for PersistentCache (unix seconds)."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProviders:
    """
    Scriptable stand-in for the four provider APIs.

    Each attribute is a JSON-able body (served with 200), an int
    (served as that HTTP status), a str (non-JSON text body), an
    exception to raise, or a callable taking the request and
    returning one of those.
    """

    def __init__(self):
        self.ooni_measurements: Any = {"results": []}
        self.ooni_aggregation: Any = {"result": []}
        self.ioda_events: Any = {"data": []}
        self.ioda_alerts: Any = {"data": []}
        self.ioda_signals: Any = {"data": {}}
        self.cf_anomalies: Any = {"success": True, "result": {"trafficAnomalies": []}}
        self.ripe_connected: Any = {"results": []}
        self.ripe_disconnected: Any = {"results": []}
        self.telemetry: Any = {"ok": True}

        self.delay: Dict[str, float] = {}
        self.calls: List[httpx.Request] = []

    def count(self, fragment: str) -> int:
        return sum(1 for r in self.calls if fragment in str(r.url))

    def _route(self, request: httpx.Request) -> Any:
        url = str(request.url)
        path = request.url.path
        if url.startswith(OONI_URL):
            return "ooni", self.ooni_measurements if path.endswith("/measurements") else self.ooni_aggregation
        if url.startswith(IODA_URL):
            if "/outages/events" in path:
                return "ioda", self.ioda_events
            if "/outages/alerts" in path:
                return "ioda", self.ioda_alerts
            return "ioda", self.ioda_signals
        if url.startswith(CF_URL):
            return "cloudflare", self.cf_anomalies
        if url.startswith(RIPE_URL):
            status = request.url.params.get("status")
            return "ripe", self.ripe_connected if status == "1" else self.ripe_disconnected
        if url.startswith(TELEMETRY_URL):
            return "telemetry", self.telemetry
        return "unknown", 404

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        name, body = self._route(request)
        if name in self.delay:
            await asyncio.sleep(self.delay[name])
        if callable(body):
            body = body(request)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, int):
            return httpx.Response(body, request=request)
        if isinstance(body, str):
            return httpx.Response(200, text=body, request=request)
        return httpx.Response(200, json=body, request=request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def measurement(asn: int, anomaly: bool = False, confirmed: bool = False, uid: str = "m") -> Dict[str, Any]:
    return {
        "measurement_uid": uid,
        "probe_cc": "IR",
        "probe_asn": f"AS{asn}",
        "test_name": "web_connectivity",
        "measurement_start_time": "2024-01-01T00:00:00Z",
        "anomaly": anomaly,
        "confirmed": confirmed,
        "failure": False,
    }


def probes(n: int) -> Dict[str, Any]:
    return {"results": [{"id": i, "country_code": "IR", "status": {"name": "x"}} for i in range(n)]}


def ten_isp_reference() -> ReferenceData:
    """10 ISPs on ASNs 1..10, no regions."""
    return ReferenceData(
        regions=(),
        isps=tuple((f"isp{i}", f"ISP {i}", f"ISP {i}", "fixed") for i in range(10)),
        asn_table={i + 1: f"isp{i}" for i in range(10)},
        region_isps={},
        version="test",
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(store, clock) -> PersistentCache:
    return PersistentCache(store, clock=clock)


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        store_backend="memory",
        ooni_base_url=OONI_URL,
        ioda_base_url=IODA_URL,
        cloudflare_base_url=CF_URL,
        ripe_base_url=RIPE_URL,
        source_timeout_sec=0.5,
        refresh_enabled=False,
        telemetry_endpoint=TELEMETRY_URL,
    )


@pytest.fixture
def make_services(settings, store, providers):
    def _make(reference: Optional[ReferenceData] = None, **overrides):
        s = settings.model_copy(update=overrides) if overrides else settings
        kwargs = {"store": store, "http": providers.client()}
        if reference is not None:
            kwargs["reference"] = reference
        return build_services(s, **kwargs)

    return _make


async def set_setting(store: MemoryStore, name: str, value: Any) -> None:
    await store.set(f"netwatch:settings:{name}", json.dumps(value))
