# netwatch/routes/admin.py
# ------------------------------------------------------------
# Admin controls
#
# POST /api/admin/reset wipes the cache namespace (the reset path);
# settings, alerts and telemetry are untouched.
#
# No token. Instead:
# - Global cooldown (e.g., 5 minutes) to prevent spam
# - Short lock to avoid concurrent triggers
# ------------------------------------------------------------

from fastapi import APIRouter, Depends, HTTPException, Request
import asyncio
import hashlib
import logging
import time

from ..services import Services
from ._common import get_services

router = APIRouter(tags=["admin"])
logger = logging.getLogger(__name__)

K_ADMIN_COOLDOWN_UNTIL = "netwatch:admin:cooldown_until"

_lock = asyncio.Lock()


def _actor_id(req: Request) -> str:
    # best-effort identity for the log line: IP + UA -> short hash
    ip = req.headers.get("x-forwarded-for") or (req.client.host if req.client else "unknown")
    ua = req.headers.get("user-agent", "")
    raw = f"{ip}|{ua}".encode("utf-8", errors="ignore")
    return hashlib.sha1(raw).hexdigest()[:6]


def _now() -> int:
    return int(time.time())


async def _cooldown_remaining(svc: Services) -> int:
    until = (await svc.store.get(K_ADMIN_COOLDOWN_UNTIL) or "0").strip()
    try:
        until_i = int(until) if until else 0
    except ValueError:
        until_i = 0
    return max(0, until_i - _now())


@router.get("/api/admin/state")
async def admin_state(svc: Services = Depends(get_services)):
    return {
        "cooldown_remaining": await _cooldown_remaining(svc),
        "busy": _lock.locked(),
    }


@router.post("/api/admin/reset")
async def reset_cache(request: Request, svc: Services = Depends(get_services)):
    # lock to prevent double-click races
    if _lock.locked():
        raise HTTPException(status_code=409, detail="Admin operation busy, try again.")

    async with _lock:
        rem = await _cooldown_remaining(svc)
        if rem > 0:
            raise HTTPException(status_code=429, detail=f"Cooldown active. Try again in {rem}s.")

        removed = await svc.cache.clear()
        await svc.store.set(
            K_ADMIN_COOLDOWN_UNTIL, str(_now() + svc.settings.admin_cooldown_sec)
        )

    logger.info("cache reset by %s: %d entries removed", _actor_id(request), removed)
    return {
        "ok": True,
        "deleted": {"cache_entries": removed},
        "cooldown_sec": svc.settings.admin_cooldown_sec,
    }
