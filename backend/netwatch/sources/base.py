# netwatch/sources/base.py
# ------------------------------------------------------------
# Shared plumbing for provider clients.
#
# Contract for every client method:
# - never raises to the caller
# - returns a tagged SourceResult (ok + items | failure + reason)
# - logs the failure so operators can see which provider broke
# ------------------------------------------------------------

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)


class SourceClient:
    """
    Base class owning request construction and JSON decoding.

    The httpx.AsyncClient is injected so one connection pool is
    shared across providers and tests can pass a MockTransport.
    """

    name = "source"

    def __init__(self, http: httpx.AsyncClient, base_url: str, timeout: float = 10.0):
        self._http = http
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    async def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Optional[Any], Optional[str]]:
        """
        GET base_url + path.

        Returns (payload, None) on success or (None, reason) on any
        transport error, non-2xx status or undecodable body.
        """
        url = f"{self.base_url}{path}"
        try:
            resp = await self._http.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            reason = f"transport error: {exc.__class__.__name__}"
            logger.warning("[%s] %s for %s", self.name, reason, url)
            return None, reason

        if not resp.is_success:
            reason = f"http {resp.status_code}"
            logger.warning("[%s] %s for %s", self.name, reason, url)
            return None, reason

        try:
            return resp.json(), None
        except ValueError:
            reason = "malformed JSON body"
            logger.warning("[%s] %s for %s", self.name, reason, url)
            return None, reason


def as_dict(v: Any) -> Dict[str, Any]:
    return v if isinstance(v, dict) else {}


def as_float(v: Any, default: float = 0.0) -> float:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return default
    # NaN would slip past every threshold comparison
    return f if math.isfinite(f) else default


def as_int(v: Any, default: Optional[int] = None) -> Optional[int]:
    try:
        return int(v)
    except (TypeError, ValueError, OverflowError):
        return default
