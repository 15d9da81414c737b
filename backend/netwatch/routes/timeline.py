# netwatch/routes/timeline.py
# ------------------------------------------------------------
# Historical trend API
#
# - /api/timeline: daily connectivity score (0-100) + status
# - /api/signals: raw IODA signal series for charts
# ------------------------------------------------------------

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..services import Services
from ._common import get_services, items

router = APIRouter(tags=["timeline"])


@router.get("/api/timeline")
async def get_timeline(
    days: int = Query(7, ge=1, le=90),
    svc: Services = Depends(get_services),
):
    timeline = await svc.timeline.get_timeline(days)
    return items(timeline.points, synthetic=timeline.synthetic, stale=timeline.stale)


@router.get("/api/signals")
async def get_signals(
    entity_type: Literal["country", "asn", "region"] = Query("country"),
    entity_code: Optional[str] = Query(None),
    hours: int = Query(24 * 7, ge=1, le=24 * 90),
    datasource: Literal["bgp", "ping-slash24", "merit-nt"] = Query("bgp"),
    max_points: int = Query(100, ge=1, le=1000),
    svc: Services = Depends(get_services),
):
    points = await svc.timeline.get_signals(
        entity_type=entity_type,
        entity_code=entity_code,
        hours=hours,
        datasource=datasource,
        max_points=max_points,
    )
    return items(points, datasource=datasource)
