# netwatch/synthetic.py
# ------------------------------------------------------------
# Placeholder data for when every source and the cache are empty.
#
# Nothing here is ever blended into real aggregation output:
# callers wrap it in results flagged synthetic=True so the UI can
# show an offline banner and tests can assert on it.
# Values are deterministic (no randomness).
# ------------------------------------------------------------

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import List, Tuple

from .models import ISP, ConnectivityStatus, Region, TimelinePoint
from .normalizer import status_from_score
from .reference import ReferenceData


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def _region_pattern(i: int) -> ConnectivityStatus:
    if i % 3 == 0:
        return "offline"
    if i % 2 == 0:
        return "limited"
    return "online"


def _isp_pattern(i: int) -> ConnectivityStatus:
    if i == 0:
        return "offline"
    if i % 2 == 0:
        return "limited"
    return "online"


def placeholder_entities(
    reference: ReferenceData,
    now: datetime,
) -> Tuple[List[ISP], List[Region]]:
    """
    Reference entities with a fixed, recognisable status pattern.
    """
    isps = reference.build_isps()
    for i, isp in enumerate(isps):
        isp.status = _isp_pattern(i)
        isp.last_updated = now

    regions = reference.build_regions()
    for i, region in enumerate(regions):
        region.status = _region_pattern(i)
        region.last_updated = now

    return isps, regions


def placeholder_timeline(days: int, now: datetime, step_hours: int = 4) -> List[TimelinePoint]:
    """
    Smooth wave between ~30 and ~90, one point per step_hours.
    """
    points: List[TimelinePoint] = []
    for i in range(days * 24, -1, -step_hours):
        value = clamp(60.0 + math.sin(i / 12) * 30.0, 0.0, 100.0)
        points.append(TimelinePoint(
            timestamp=now - timedelta(hours=i),
            value=round(value, 1),
            status=status_from_score(value),
        ))
    return points
