# netwatch/sources/ooni.py
# ------------------------------------------------------------
# OONI (Open Observatory of Network Interference) client.
#
# Active interference probes: every measurement carries the probe
# ASN plus anomaly / confirmed-blocked flags.
# API: https://api.ooni.io/
# ------------------------------------------------------------

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional

from pydantic import ValidationError

from ..models import DailyAggregate, OONIMeasurement, SourceResult
from .base import SourceClient, as_dict, as_int

logger = logging.getLogger(__name__)


def _iso_day(dt: datetime) -> str:
    return dt.date().isoformat()


def parse_asn(v: Any) -> Optional[int]:
    """
    OONI reports ASNs as "AS44244"; older rows use plain ints.
    """
    if isinstance(v, str) and v.upper().startswith("AS"):
        v = v[2:]
    return as_int(v)


class OONIClient(SourceClient):
    name = "ooni"

    async def fetch_measurements(
        self,
        country: str,
        since: datetime,
        until: datetime,
        limit: int = 100,
        test_name: Optional[str] = None,
    ) -> SourceResult[OONIMeasurement]:
        params = {
            "probe_cc": country,
            "since": _iso_day(since),
            "until": _iso_day(until),
            "limit": limit,
        }
        if test_name:
            params["test_name"] = test_name

        data, reason = await self._get_json("/measurements", params)
        if reason:
            return SourceResult.failure(self.name, reason)

        rows = as_dict(data).get("results")
        if not isinstance(rows, list):
            logger.warning("[ooni] response without 'results' list")
            return SourceResult.failure(self.name, "missing results envelope")

        out: List[OONIMeasurement] = []
        for row in rows:
            row = as_dict(row)
            try:
                out.append(OONIMeasurement(
                    measurement_uid=str(row.get("measurement_uid") or row.get("report_id") or ""),
                    probe_cc=str(row.get("probe_cc") or country),
                    probe_asn=parse_asn(row.get("probe_asn")),
                    test_name=str(row.get("test_name") or ""),
                    measurement_start_time=row.get("measurement_start_time"),
                    anomaly=bool(row.get("anomaly", False)),
                    confirmed=bool(row.get("confirmed", False)),
                    failure=bool(row.get("failure", False)),
                ))
            except ValidationError as exc:
                logger.warning("[ooni] skipping malformed measurement: %s", exc)

        return SourceResult.success(self.name, out[:limit])

    async def fetch_daily_aggregation(
        self,
        country: str,
        since: datetime,
        until: datetime,
    ) -> SourceResult[DailyAggregate]:
        """
        Per-day anomaly / measurement counts (timeline source).
        """
        params = {
            "probe_cc": country,
            "since": _iso_day(since),
            "until": _iso_day(until),
            "axis_x": "measurement_start_day",
        }
        data, reason = await self._get_json("/aggregation", params)
        if reason:
            return SourceResult.failure(self.name, reason)

        rows = as_dict(data).get("result")
        if not isinstance(rows, list):
            return SourceResult.failure(self.name, "missing result envelope")

        out: List[DailyAggregate] = []
        for row in rows:
            row = as_dict(row)
            day = row.get("measurement_start_day")
            if not day:
                continue
            out.append(DailyAggregate(
                day=str(day),
                anomaly_count=as_int(row.get("anomaly_count"), 0),
                confirmed_count=as_int(row.get("confirmed_count"), 0),
                measurement_count=as_int(row.get("measurement_count"), 0),
            ))
        return SourceResult.success(self.name, out)
