# netwatch/routes/health.py
# ------------------------------------------------------------
# Health & freshness endpoint
#
# Purpose:
# - quick liveness check
# - store reachability
# - cache freshness + per-source health of the last cycle
# ------------------------------------------------------------

from fastapi import APIRouter, Depends
from datetime import datetime, timezone
import time

from ..store import RedisStore
from ..services import Services
from ._common import get_services

router = APIRouter(tags=["health"])

# server start reference (module load time)
STARTED_AT = datetime.now(timezone.utc)


def _iso(dt):
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/api/health")
async def health(svc: Services = Depends(get_services)):
    """
    Health status for the dashboard.

    Returns:
    - ok, utc
    - started_at, uptime_seconds
    - store (backend + reachability)
    - freshness (last cache writes)
    - sources (health from the last aggregation cycle)
    - alerts_unread
    - latency_ms (server-measured for this handler)
    """
    t0 = time.perf_counter()
    agg = svc.aggregator

    store_info = {"backend": svc.settings.store_backend, "ok": True}
    if isinstance(svc.store, RedisStore):
        try:
            store_info["ok"] = await svc.store.ping()
        except Exception:  # noqa: BLE001
            store_info["ok"] = False

    freshness = {
        "dashboard": _iso(await svc.cache.get_last_write_time(agg.dashboard_key)),
    }
    for name in ("ooni", "ioda", "cloudflare", "ripe"):
        freshness[name] = _iso(await svc.cache.get_last_write_time(agg.source_key(name)))

    last = svc.dashboard.result
    sources = {k: v.model_dump(mode="json") for k, v in last.sources.items()} if last else {}

    now = datetime.now(timezone.utc)
    uptime_seconds = int((now - STARTED_AT).total_seconds())
    latency_ms = round((time.perf_counter() - t0) * 1000, 2)

    return {
        # keep ok true if API is up; store.ok carries dependency state
        "ok": True,
        "utc": _iso(now),
        "started_at": _iso(STARTED_AT),
        "uptime_seconds": uptime_seconds,
        "country": agg.country,
        "reference_version": agg.reference.version,
        "store": store_info,
        "freshness": freshness,
        "sources": sources,
        "loading": svc.dashboard.loading,
        "alerts_unread": await svc.alerts.unread_count(),
        "latency_ms": latency_ms,
    }
