# netwatch/routes/telemetry.py
# ------------------------------------------------------------
# Crowdsourced telemetry API
#
# The request body has no coordinate fields and rejects unknown
# keys, so GPS data cannot even be submitted.
# ------------------------------------------------------------

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..errors import TelemetryRejected
from ..models import ConnectivityStatus
from ..services import Services
from ._common import get_services, items

router = APIRouter(tags=["telemetry"])


class ReportRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: ConnectivityStatus
    isp_id: Optional[str] = None
    city: Optional[str] = None
    latency: Optional[float] = Field(default=None, ge=0.0)


@router.post("/api/telemetry")
async def report(body: ReportRequest, svc: Services = Depends(get_services)):
    try:
        stored = await svc.telemetry.report_connectivity(
            body.status,
            isp_id=body.isp_id,
            city=body.city,
            latency=body.latency,
        )
    except TelemetryRejected as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    if stored is None:
        return {"ok": True, "recorded": False, "reason": "telemetry disabled"}
    return {"ok": True, "recorded": True}


@router.get("/api/telemetry")
async def local_reports(svc: Services = Depends(get_services)):
    return items(await svc.telemetry.get_local_reports())


@router.delete("/api/telemetry")
async def clear_reports(svc: Services = Depends(get_services)):
    await svc.telemetry.clear_local_reports()
    return {"ok": True}
