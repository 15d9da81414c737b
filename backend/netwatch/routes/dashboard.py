# netwatch/routes/dashboard.py
# ------------------------------------------------------------
# Dashboard API
#
# GET serves the cached aggregation when fresh; POST /refresh
# forces a new cycle. Both always return renderable data:
# real, stale (stale=true) or placeholder (synthetic=true).
# ------------------------------------------------------------

from fastapi import APIRouter, Depends

from ..services import Services
from ._common import get_services, items

router = APIRouter(tags=["dashboard"])


def _envelope(svc: Services, result) -> dict:
    body = result.model_dump(mode="json")
    body["loading"] = svc.dashboard.loading
    return body


@router.get("/api/dashboard")
async def get_dashboard(svc: Services = Depends(get_services)):
    """
    Unified connectivity picture: ISPs, regions, counts, headline
    status and per-source health.
    """
    result = await svc.dashboard.refresh(force=False)
    return _envelope(svc, result)


@router.post("/api/dashboard/refresh")
async def refresh_dashboard(svc: Services = Depends(get_services)):
    result = await svc.dashboard.refresh(force=True)
    return _envelope(svc, result)


@router.get("/api/isps")
async def list_isps(svc: Services = Depends(get_services)):
    result = await svc.dashboard.refresh(force=False)
    return items(result.isps, synthetic=result.synthetic, stale=result.stale)


@router.get("/api/regions")
async def list_regions(svc: Services = Depends(get_services)):
    result = await svc.dashboard.refresh(force=False)
    return items(result.regions, synthetic=result.synthetic, stale=result.stale)
