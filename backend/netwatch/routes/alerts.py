# netwatch/routes/alerts.py
# ------------------------------------------------------------
# Alerts API
#
# The feed is a bounded, newest-first list of outage alerts with
# per-alert read flags. Rendering and OS push delivery are up to
# the client.
# ------------------------------------------------------------

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query

from ..models import utcnow
from ..services import Services
from ._common import get_services, items

router = APIRouter(tags=["alerts"])


@router.get("/api/alerts")
async def list_alerts(
    hours: int = Query(24, ge=1, le=24 * 30),
    limit: int = Query(20, ge=1, le=300),
    refresh: bool = Query(True),
    svc: Services = Depends(get_services),
):
    """
    List alerts (newest first).

    refresh=false skips the provider call and returns the stored feed.
    """
    if refresh:
        until = utcnow()
        alerts = await svc.alerts.list_alerts(since=until - timedelta(hours=hours), until=until, limit=limit)
    else:
        alerts = await svc.alerts.alerts()
    unread = sum(1 for a in alerts if not a.read)
    return items(alerts, unread=unread)


@router.post("/api/alerts/read-all")
async def mark_all_read(svc: Services = Depends(get_services)):
    changed = await svc.alerts.mark_all_read()
    return {"ok": True, "changed": changed}


@router.post("/api/alerts/{alert_id}/read")
async def mark_read(alert_id: str, svc: Services = Depends(get_services)):
    if not await svc.alerts.mark_read(alert_id):
        raise HTTPException(status_code=404, detail="Alert not found")
    return {"ok": True, "unread": await svc.alerts.unread_count()}


@router.delete("/api/alerts")
async def clear_alerts(svc: Services = Depends(get_services)):
    await svc.alerts.clear_all()
    return {"ok": True}
