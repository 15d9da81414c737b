# netwatch/sources/ioda.py
# ------------------------------------------------------------
# IODA (Internet Outage Detection and Analysis) client.
#
# Three shapes:
# - outage events (score per entity and time window)
# - outage alerts, classified into alert tiers here
# - raw signal time series (bgp / ping-slash24 / merit-nt)
# Time windows are Unix seconds.
# ------------------------------------------------------------

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Literal

from ..models import IODAAlert, IODAOutageEvent, SignalPoint, SourceResult
from ..normalizer import alert_category
from .base import SourceClient, as_dict, as_float, as_int

logger = logging.getLogger(__name__)

EntityType = Literal["country", "asn", "region"]
Datasource = Literal["bgp", "ping-slash24", "merit-nt"]


def _unix(dt: datetime) -> int:
    return int(dt.timestamp())


class IODAClient(SourceClient):
    name = "ioda"

    async def fetch_measurements(
        self,
        country: str,
        since: datetime,
        until: datetime,
        limit: int = 50,
    ) -> SourceResult[IODAOutageEvent]:
        """
        Country-level outage events over [since, until].
        """
        return await self.fetch_outage_events("country", country, since, until, limit)

    async def fetch_outage_events(
        self,
        entity_type: EntityType,
        entity_code: str,
        since: datetime,
        until: datetime,
        limit: int = 50,
    ) -> SourceResult[IODAOutageEvent]:
        """
        Outage events for one entity (country code, ASN or region).
        Rows without an entity object are attributed to the queried one.
        """
        params = {
            "entityType": entity_type,
            "entityCode": entity_code,
            "from": _unix(since),
            "until": _unix(until),
            "limit": limit,
        }
        data, reason = await self._get_json("/outages/events", params)
        if reason:
            return SourceResult.failure(self.name, reason)

        rows = as_dict(data).get("data")
        if not isinstance(rows, list):
            return SourceResult.failure(self.name, "missing data envelope")

        out: List[IODAOutageEvent] = []
        for row in rows:
            row = as_dict(row)
            entity = as_dict(row.get("entity"))
            start = as_int(row.get("start"), 0)
            code = str(entity.get("code") or entity_code)
            out.append(IODAOutageEvent(
                id=str(row.get("id") or f"{code}-{start}"),
                entity_type=str(entity.get("type") or entity_type),
                entity_code=code,
                entity_name=str(entity.get("name") or ""),
                start_time=start,
                end_time=as_int(row.get("end")),
                score=as_float(row.get("score"), 0.0),
                datasource=str(row.get("datasource") or ""),
            ))
        return SourceResult.success(self.name, out[:limit])

    async def fetch_alerts(
        self,
        country: str,
        since: datetime,
        until: datetime,
        limit: int = 20,
        entity_type: EntityType = "country",
    ) -> SourceResult[IODAAlert]:
        """
        Alerts, already score-thresholded into outage / partial /
        restoration / info.
        """
        params = {
            "entityType": entity_type,
            "entityCode": country,
            "from": _unix(since),
            "until": _unix(until),
            "limit": limit,
        }
        data, reason = await self._get_json("/outages/alerts", params)
        if reason:
            return SourceResult.failure(self.name, reason)

        rows = as_dict(data).get("data")
        if not isinstance(rows, list):
            return SourceResult.failure(self.name, "missing data envelope")

        out: List[IODAAlert] = []
        for idx, row in enumerate(rows):
            row = as_dict(row)
            entity = as_dict(row.get("entity"))
            score = as_float(row.get("score"), 0.0)
            direction = row.get("direction")
            ts = as_int(row.get("time"), _unix(until))
            out.append(IODAAlert(
                id=str(row.get("id") or f"{idx}-{ts}"),
                category=alert_category(score, direction),
                score=score,
                direction=direction if isinstance(direction, str) else None,
                time=ts,
                entity_type=str(entity.get("type") or "country"),
                entity_code=str(entity.get("code") or country),
                entity_name=str(entity.get("name") or ""),
            ))
        return SourceResult.success(self.name, out[:limit])

    async def fetch_signal_series(
        self,
        entity_type: EntityType,
        entity_code: str,
        since: datetime,
        until: datetime,
        datasource: Datasource = "bgp",
        max_points: int = 100,
    ) -> SourceResult[SignalPoint]:
        params = {
            "from": _unix(since),
            "until": _unix(until),
            "datasource": datasource,
            "maxPoints": max_points,
        }
        data, reason = await self._get_json(f"/signals/raw/{entity_type}/{entity_code}", params)
        if reason:
            return SourceResult.failure(self.name, reason)

        series = as_dict(as_dict(as_dict(data).get("data")).get(datasource))
        values = series.get("values")
        if not isinstance(values, list):
            logger.warning("[ioda] no '%s' series in signal response", datasource)
            return SourceResult.success(self.name, [])

        out: List[SignalPoint] = []
        for pair in values:
            if not isinstance(pair, (list, tuple)) or len(pair) < 2 or pair[1] is None:
                continue
            ts = as_int(pair[0])
            if ts is None:
                continue
            out.append(SignalPoint(timestamp=ts, value=as_float(pair[1])))
        return SourceResult.success(self.name, out)
