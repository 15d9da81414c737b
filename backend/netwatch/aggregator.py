# netwatch/aggregator.py
# ------------------------------------------------------------
# Aggregation engine.
#
# One refresh cycle:
# 1. fan out to every provider at once (cache-checked, timed out;
#    IODA is asked per country and per tracked ASN)
# 2. wait for all of them to settle
# 3. normalize into per-ISP statuses (ASN table lookup)
# 4. apply the nationwide traffic-collapse override
# 5. reconcile regions (coverage map, else country default)
# 6. count + headline status, write back to cache
#
# A provider failure only removes that provider's evidence. When
# all providers fail the last cached result is served as stale,
# and with no cache at all a synthetic placeholder is returned.
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from .cache import PersistentCache
from .errors import SourceUnavailable
from .models import (
    ISP,
    AggregationResult,
    ConnectivityStatus,
    DashboardStats,
    IODAOutageEvent,
    OONIMeasurement,
    ProbeStatus,
    Region,
    SourceHealth,
    SourceResult,
    StatusCounts,
    TrafficAnomaly,
    dump,
    utcnow,
)
from .normalizer import (
    dashboard_status,
    health_from_outage_score,
    severity_max,
    status_from_measurements,
    status_from_score,
    status_from_traffic_delta,
)
from .reference import DEFAULT_REFERENCE, ReferenceData
from .sources.base import as_int
from .sources.cloudflare import CloudflareRadarClient
from .sources.ioda import IODAClient
from .sources.ooni import OONIClient
from .sources.ripe import RIPEAtlasClient
from .synthetic import placeholder_entities

logger = logging.getLogger(__name__)


class ConnectivityAggregator:
    def __init__(
        self,
        *,
        ooni: OONIClient,
        ioda: IODAClient,
        cloudflare: CloudflareRadarClient,
        ripe: RIPEAtlasClient,
        cache: PersistentCache,
        country: str = "IR",
        reference: ReferenceData = DEFAULT_REFERENCE,
        window_hours: int = 24,
        limit: int = 200,
        timeout_sec: float = 10.0,
        dashboard_expiry_sec: float = 300,
        source_expiry_sec: float = 600,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ooni = ooni
        self.ioda = ioda
        self.cloudflare = cloudflare
        self.ripe = ripe
        self.cache = cache
        self.country = country
        self.reference = reference
        self.window_hours = window_hours
        self.limit = limit
        self.timeout_sec = timeout_sec
        self.dashboard_expiry_sec = dashboard_expiry_sec
        self.source_expiry_sec = source_expiry_sec
        self._clock = clock

    @property
    def dashboard_key(self) -> str:
        return f"dashboard:{self.country}"

    def source_key(self, name: str) -> str:
        return f"source:{name}:{self.country}"

    # --------------------------------------------------------
    # Entry points
    # --------------------------------------------------------
    async def get_dashboard(self, force: bool = False) -> AggregationResult:
        """
        Fresh cached result unless force=True, else a new cycle.
        """
        if not force:
            # keep an expired dashboard around for the total-failure fallback
            cached = await self.cache.get(self.dashboard_key, evict=False)
            if cached is not None:
                try:
                    return AggregationResult.model_validate(cached)
                except ValidationError:
                    logger.warning("cached dashboard is malformed, recomputing")
        return await self.aggregate()

    async def aggregate(self) -> AggregationResult:
        now = self._clock()
        since = now - timedelta(hours=self.window_hours)

        # fan out; each _fetch swallows its own failure
        (ooni, ooni_h), (ioda, ioda_h), (traffic, cf_h), (probes, ripe_h) = await asyncio.gather(
            self._fetch(
                "ooni",
                OONIMeasurement,
                lambda: self.ooni.fetch_measurements(self.country, since, now, self.limit),
            ),
            self._fetch(
                "ioda",
                IODAOutageEvent,
                lambda: self._ioda_events(since, now),
            ),
            self._fetch(
                "cloudflare",
                TrafficAnomaly,
                lambda: self.cloudflare.fetch_measurements(self.country, since, now, self.limit),
            ),
            self._fetch(
                "ripe",
                ProbeStatus,
                lambda: self.ripe.fetch_probe_status(self.country),
            ),
        )
        health = {"ooni": ooni_h, "ioda": ioda_h, "cloudflare": cf_h, "ripe": ripe_h}

        if all(h.status == "failed" for h in health.values()):
            return await self._fallback(health, now)

        result = self.reconcile(
            ooni=ooni,
            ioda=ioda,
            traffic=traffic,
            probes=probes,
            now=now,
        )
        result.sources = health

        await self.cache.set(self.dashboard_key, dump(result), self.dashboard_expiry_sec)
        return result

    # --------------------------------------------------------
    # Fetch + cache one provider
    # --------------------------------------------------------
    async def _fetch(
        self,
        name: str,
        model: Type[BaseModel],
        call: Callable[[], Awaitable[SourceResult[Any]]],
    ) -> Tuple[Optional[List[Any]], SourceHealth]:
        """
        Returns (items, health). items is None when the provider
        gave nothing usable and nothing was cached.
        """
        attempt: Dict[str, Optional[str]] = {"called": None, "error": None}

        async def fetch_fn() -> List[Dict[str, Any]]:
            attempt["called"] = "yes"
            try:
                result = await asyncio.wait_for(call(), timeout=self.timeout_sec)
            except asyncio.TimeoutError:
                attempt["error"] = "timeout"
                raise SourceUnavailable(name, "timeout")
            if not result.ok:
                attempt["error"] = result.reason or "unavailable"
                raise SourceUnavailable(name, attempt["error"])
            return [dump(item) for item in result.items]

        try:
            raw = await self.cache.get_or_fetch(self.source_key(name), fetch_fn, self.source_expiry_sec)
        except SourceUnavailable as exc:
            return None, SourceHealth(status="failed", reason=exc.reason)
        except Exception as exc:  # noqa: BLE001
            logger.exception("[%s] unexpected error during fetch", name)
            return None, SourceHealth(status="failed", reason=f"error: {exc.__class__.__name__}")

        try:
            items = [model.model_validate(row) for row in raw or []]
        except ValidationError:
            logger.warning("[%s] cached payload does not validate, dropping", name)
            await self.cache.remove(self.source_key(name))
            return None, SourceHealth(status="failed", reason="malformed cached payload")

        if attempt["called"] is None:
            state = "cached"
        elif attempt["error"] is not None:
            state = "stale"
        else:
            state = "live"
        return items, SourceHealth(status=state, reason=attempt["error"], items=len(items))

    async def _ioda_events(self, since: datetime, until: datetime) -> SourceResult[IODAOutageEvent]:
        """
        Country-level events plus one ASN-level query per tracked ASN,
        all in flight at once. Fails only when every query fails.
        """
        asns = sorted(self.reference.asn_table)
        results = await asyncio.gather(
            self.ioda.fetch_measurements(self.country, since, until, self.limit),
            *(
                self.ioda.fetch_outage_events("asn", str(asn), since, until, self.limit)
                for asn in asns
            ),
        )
        ok = [r for r in results if r.ok]
        if not ok:
            return SourceResult.failure("ioda", results[0].reason or "unavailable")
        if len(ok) < len(results):
            logger.warning("[ioda] %d of %d outage queries failed", len(results) - len(ok), len(results))

        events: List[IODAOutageEvent] = []
        seen = set()
        for r in ok:
            for ev in r.items:
                if ev.id not in seen:
                    seen.add(ev.id)
                    events.append(ev)
        return SourceResult.success("ioda", events)

    # --------------------------------------------------------
    # Reconciliation (pure apart from the clock value passed in)
    # --------------------------------------------------------
    def reconcile(
        self,
        *,
        ooni: Optional[List[OONIMeasurement]],
        ioda: Optional[List[IODAOutageEvent]],
        traffic: Optional[List[TrafficAnomaly]],
        probes: Optional[List[ProbeStatus]],
        now: datetime,
    ) -> AggregationResult:
        ref = self.reference
        evidence: Dict[str, List[ConnectivityStatus]] = defaultdict(list)
        country: List[ConnectivityStatus] = []

        # OONI: anomaly ratio per ISP (unmapped ASNs ignored)
        if ooni:
            by_isp: Dict[str, List[OONIMeasurement]] = defaultdict(list)
            for m in ooni:
                isp_id = ref.isp_for_asn(m.probe_asn)
                if isp_id:
                    by_isp[isp_id].append(m)
            for isp_id, group in by_isp.items():
                evidence[isp_id].append(status_from_measurements(group))
            country.append(status_from_measurements(ooni))

        # IODA: worst outage score per ASN / for the country
        if ioda:
            worst_isp: Dict[str, float] = {}
            worst_country: Optional[float] = None
            for ev in ioda:
                if ev.entity_type == "asn":
                    isp_id = ref.isp_for_asn(as_int(ev.entity_code))
                    if isp_id:
                        worst_isp[isp_id] = max(worst_isp.get(isp_id, 0.0), ev.score)
                elif ev.entity_type == "country":
                    worst_country = max(worst_country or 0.0, ev.score)
            for isp_id, score in worst_isp.items():
                evidence[isp_id].append(status_from_score(health_from_outage_score(score)))
            if worst_country is not None:
                country.append(status_from_score(health_from_outage_score(worst_country)))

        # RIPE: probe health is country-wide only
        if probes:
            country.append(status_from_score(probes[0].health))

        # Cloudflare: most recent anomaly is the traffic-delta signal
        traffic_status: ConnectivityStatus = "unknown"
        if traffic:
            latest = max(traffic, key=lambda a: a.timestamp)
            traffic_status = status_from_traffic_delta(latest.traffic_change)
            country.append(traffic_status)

        country_default = severity_max(country)

        isps = ref.build_isps()
        for isp in isps:
            # no evidence -> unknown
            isp.status = severity_max(evidence.get(isp.id, []))
            isp.last_updated = now

        isp_status = {isp.id: isp.status for isp in isps}
        regions = ref.build_regions()
        for region in regions:
            mapped = ref.region_isps.get(region.id, ())
            st = severity_max(isp_status.get(i, "unknown") for i in mapped)
            region.status = st if st != "unknown" else country_default
            region.last_updated = now

        override = traffic_status == "offline"
        if override:
            logger.warning("traffic collapse detected, forcing every entity offline")
            for isp in isps:
                isp.status = "offline"
            for region in regions:
                region.status = "offline"

        return self.summarize(isps, regions, now, traffic_override=override)

    @staticmethod
    def summarize(
        isps: List[ISP],
        regions: List[Region],
        now: datetime,
        traffic_override: bool = False,
    ) -> AggregationResult:
        statuses: List[ConnectivityStatus] = [x.status for x in isps] + [x.status for x in regions]

        counts = StatusCounts(
            online=statuses.count("online"),
            limited=statuses.count("limited"),
            offline=statuses.count("offline"),
            unknown=statuses.count("unknown"),
        )
        stats = DashboardStats(
            regions_online=sum(1 for r in regions if r.status == "online"),
            regions_total=len(regions),
            isps_online=sum(1 for i in isps if i.status == "online"),
            isps_total=len(isps),
            active_outages=counts.offline,
            overall_status=dashboard_status(statuses),
            last_updated=now,
        )
        return AggregationResult(
            isps=isps,
            regions=regions,
            counts=counts,
            overall_status=severity_max(statuses),
            stats=stats,
            traffic_override=traffic_override,
            timestamp=now,
        )

    # --------------------------------------------------------
    # Total failure
    # --------------------------------------------------------
    async def _fallback(self, health: Dict[str, SourceHealth], now: datetime) -> AggregationResult:
        stale = await self.cache.get_stale(self.dashboard_key)
        if stale is not None:
            try:
                result = AggregationResult.model_validate(stale)
            except ValidationError:
                logger.warning("stale dashboard is malformed, ignoring it")
            else:
                logger.warning("all sources failed, serving stale dashboard from %s", result.timestamp)
                result.stale = True
                result.sources = health
                return result

        logger.error("all sources failed and nothing cached, serving synthetic placeholder")
        isps, regions = placeholder_entities(self.reference, now)
        result = self.summarize(isps, regions, now)
        result.synthetic = True
        result.sources = health
        return result


class DashboardState:
    """
    Shared result holder for overlapping refreshes (startup load and
    manual refresh). Last write wins; the loading flag is cleared
    only by the newest refresh.
    """

    def __init__(self, aggregator: ConnectivityAggregator):
        self._aggregator = aggregator
        self._generation = 0
        self.result: Optional[AggregationResult] = None
        self.loading = False

    async def refresh(self, force: bool = True) -> AggregationResult:
        self._generation += 1
        generation = self._generation
        self.loading = True
        try:
            result = await self._aggregator.get_dashboard(force=force)
            self.result = result
            return result
        finally:
            if generation == self._generation:
                self.loading = False
