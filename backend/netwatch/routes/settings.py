# netwatch/routes/settings.py
# ------------------------------------------------------------
# Read-only view of the host-owned settings the core consults.
# ------------------------------------------------------------

from fastapi import APIRouter, Depends

from ..services import Services
from ._common import get_services

router = APIRouter(tags=["settings"])


@router.get("/api/settings")
async def get_settings(svc: Services = Depends(get_services)):
    prefs = await svc.prefs.load()
    return prefs.model_dump(mode="json")
