# netwatch/sources/ripe.py
# ------------------------------------------------------------
# RIPE Atlas client (distributed probe network).
#
# Probe status codes: 1=connected, 2=disconnected, 3=abandoned.
# The share of connected probes becomes a 0-100 health score.
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from ..models import ProbeStatus, RIPEProbe, SourceResult
from .base import SourceClient, as_dict, as_int

logger = logging.getLogger(__name__)

STATUS_CONNECTED = 1
STATUS_DISCONNECTED = 2


class RIPEAtlasClient(SourceClient):
    name = "ripe"

    async def fetch_measurements(
        self,
        country: str,
        status: Optional[int] = None,
        limit: int = 500,
    ) -> SourceResult[RIPEProbe]:
        """
        Public probes hosted in the country.
        """
        params = {
            "country_code": country,
            "is_public": "true",
            "page_size": limit,
        }
        if status is not None:
            params["status"] = status

        data, reason = await self._get_json("/probes/", params)
        if reason:
            return SourceResult.failure(self.name, reason)

        rows = as_dict(data).get("results")
        if not isinstance(rows, list):
            return SourceResult.failure(self.name, "missing results envelope")

        out: List[RIPEProbe] = []
        for row in rows:
            row = as_dict(row)
            probe_id = as_int(row.get("id"))
            if probe_id is None:
                continue
            out.append(RIPEProbe(
                id=probe_id,
                country_code=str(row.get("country_code") or country),
                status=str(as_dict(row.get("status")).get("name") or "unknown"),
                last_connected=as_int(row.get("last_connected")),
            ))
        return SourceResult.success(self.name, out[:limit])

    async def fetch_probe_status(self, country: str) -> SourceResult[ProbeStatus]:
        """
        Connected vs disconnected probe counts, queried concurrently.
        """
        connected, disconnected = await asyncio.gather(
            self.fetch_measurements(country, status=STATUS_CONNECTED),
            self.fetch_measurements(country, status=STATUS_DISCONNECTED),
        )
        if not connected.ok:
            return SourceResult.failure(self.name, connected.reason or "connected probes unavailable")
        if not disconnected.ok:
            return SourceResult.failure(self.name, disconnected.reason or "disconnected probes unavailable")

        up = len(connected.items)
        down = len(disconnected.items)
        total = up + down
        health = round(up / total * 100) if total else -1
        return SourceResult.success(
            self.name,
            [ProbeStatus(connected=up, disconnected=down, total=total, health=health)],
        )
