# netwatch/timeline.py
# ------------------------------------------------------------
# Historical trend data.
#
# - get_timeline(days): daily connectivity score from OONI
#   aggregation (100 - anomaly%), cached with stale-if-error and
#   a synthetic fallback when nothing was ever cached
# - get_signals(...): raw IODA signal series, passed through
# ------------------------------------------------------------

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from pydantic import ValidationError

from .cache import PersistentCache
from .errors import SourceUnavailable
from .models import DailyAggregate, SignalPoint, Timeline, TimelinePoint, dump, utcnow
from .normalizer import status_from_score
from .sources.ioda import Datasource, EntityType, IODAClient
from .sources.ooni import OONIClient
from .synthetic import placeholder_timeline

logger = logging.getLogger(__name__)


def _day_start(day: str) -> Optional[datetime]:
    try:
        dt = datetime.fromisoformat(day.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def points_from_aggregates(rows: List[DailyAggregate]) -> List[TimelinePoint]:
    """
    One point per day that has measurements; empty days are skipped
    rather than reported as 100% healthy.
    """
    points: List[TimelinePoint] = []
    for row in rows:
        ts = _day_start(row.day)
        if ts is None or row.measurement_count <= 0:
            continue
        flagged = min(row.anomaly_count + row.confirmed_count, row.measurement_count)
        value = round(100.0 - flagged / row.measurement_count * 100.0, 1)
        points.append(TimelinePoint(timestamp=ts, value=value, status=status_from_score(value)))
    return sorted(points, key=lambda p: p.timestamp)


class TimelineService:
    def __init__(
        self,
        ooni: OONIClient,
        ioda: IODAClient,
        cache: PersistentCache,
        country: str = "IR",
        expiry_sec: float = 1800,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._ooni = ooni
        self._ioda = ioda
        self._cache = cache
        self.country = country
        self.expiry_sec = expiry_sec
        self._clock = clock

    async def get_timeline(self, days: int = 7) -> Timeline:
        now = self._clock()
        key = f"timeline:{self.country}:{days}"
        state = {"error": None}

        async def fetch_fn():
            result = await self._ooni.fetch_daily_aggregation(
                self.country, now - timedelta(days=days), now
            )
            if not result.ok:
                state["error"] = result.reason
                raise SourceUnavailable("ooni", result.reason or "unavailable")
            return [dump(p) for p in points_from_aggregates(result.items)]

        try:
            raw = await self._cache.get_or_fetch(key, fetch_fn, self.expiry_sec)
            points = [TimelinePoint.model_validate(p) for p in raw]
        except (SourceUnavailable, ValidationError) as exc:
            logger.warning("timeline unavailable (%s), serving synthetic series", exc)
            return Timeline(points=placeholder_timeline(days, now), synthetic=True)

        return Timeline(points=points, stale=state["error"] is not None)

    async def get_signals(
        self,
        entity_type: EntityType = "country",
        entity_code: Optional[str] = None,
        hours: int = 24 * 7,
        datasource: Datasource = "bgp",
        max_points: int = 100,
    ) -> List[SignalPoint]:
        """
        Raw signal series; empty list when the provider is down.
        """
        now = self._clock()
        result = await self._ioda.fetch_signal_series(
            entity_type,
            entity_code or self.country,
            now - timedelta(hours=hours),
            now,
            datasource=datasource,
            max_points=max_points,
        )
        if not result.ok:
            logger.warning("signal series unavailable: %s", result.reason)
        return result.items
