# netwatch/services.py
# ------------------------------------------------------------
# Explicit wiring of the service objects.
#
# Built once at startup and stored on app.state; tests build their
# own with fake stores / MockTransport HTTP clients.
# ------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from .aggregator import ConnectivityAggregator, DashboardState
from .alerts import AlertFeed
from .cache import PersistentCache
from .config import Settings
from .redis_client import get_redis
from .reference import DEFAULT_REFERENCE, ReferenceData
from .settings_store import SettingsReader
from .sources.cloudflare import CloudflareRadarClient
from .sources.ioda import IODAClient
from .sources.ooni import OONIClient
from .sources.ripe import RIPEAtlasClient
from .store import KeyValueStore, MemoryStore, RedisStore
from .telemetry import TelemetryReporter
from .timeline import TimelineService


@dataclass
class Services:
    settings: Settings
    store: KeyValueStore
    http: httpx.AsyncClient
    cache: PersistentCache
    prefs: SettingsReader
    aggregator: ConnectivityAggregator
    dashboard: DashboardState
    alerts: AlertFeed
    timeline: TimelineService
    telemetry: TelemetryReporter

    async def close(self) -> None:
        await self.telemetry.flush()
        await self.http.aclose()
        await self.store.close()


def build_store(settings: Settings) -> KeyValueStore:
    if settings.store_backend == "memory":
        return MemoryStore()
    return RedisStore(get_redis(settings.redis_url))


def build_services(
    settings: Settings,
    store: Optional[KeyValueStore] = None,
    http: Optional[httpx.AsyncClient] = None,
    reference: ReferenceData = DEFAULT_REFERENCE,
) -> Services:
    store = store or build_store(settings)
    http = http or httpx.AsyncClient(
        timeout=settings.source_timeout_sec,
        headers={"User-Agent": "netwatch/0.1"},
        follow_redirects=True,
    )
    cc = settings.country_code
    t = settings.source_timeout_sec

    ooni = OONIClient(http, settings.ooni_base_url, t)
    ioda = IODAClient(http, settings.ioda_base_url, t)
    cloudflare = CloudflareRadarClient(
        http, settings.cloudflare_base_url, t, api_token=settings.cloudflare_api_token
    )
    ripe = RIPEAtlasClient(http, settings.ripe_base_url, t)

    cache = PersistentCache(store)
    prefs = SettingsReader(store)

    aggregator = ConnectivityAggregator(
        ooni=ooni,
        ioda=ioda,
        cloudflare=cloudflare,
        ripe=ripe,
        cache=cache,
        country=cc,
        reference=reference,
        window_hours=settings.measurement_window_hours,
        limit=settings.measurement_limit,
        timeout_sec=t,
        dashboard_expiry_sec=settings.dashboard_cache_sec,
        source_expiry_sec=settings.source_cache_sec,
    )

    return Services(
        settings=settings,
        store=store,
        http=http,
        cache=cache,
        prefs=prefs,
        aggregator=aggregator,
        dashboard=DashboardState(aggregator),
        alerts=AlertFeed(
            ioda,
            store,
            prefs,
            country=cc,
            reference=reference,
            capacity=settings.alert_capacity,
            window_hours=settings.alert_window_hours,
            limit=settings.alert_limit,
        ),
        timeline=TimelineService(
            ooni, ioda, cache, country=cc, expiry_sec=settings.timeline_cache_sec
        ),
        telemetry=TelemetryReporter(
            store,
            prefs,
            http=http,
            endpoint=settings.telemetry_endpoint,
            capacity=settings.telemetry_capacity,
        ),
    )
