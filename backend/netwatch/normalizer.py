# netwatch/normalizer.py
# ------------------------------------------------------------
# Pure mapping from each provider's raw metric to the shared
# connectivity vocabulary.
#
# Thresholds are fixed constants (not configurable) so results
# stay comparable across deployments.
# ------------------------------------------------------------

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from .models import AlertCategory, ConnectivityStatus, OONIMeasurement

# severity rank; "unknown" has no rank
SEVERITY = {"online": 0, "limited": 1, "offline": 2}

SCORE_ONLINE = 80
SCORE_LIMITED = 40

RATIO_OFFLINE = 0.5
RATIO_LIMITED = 0.2

DELTA_OFFLINE = -50.0
DELTA_LIMITED = -20.0

ALERT_OUTAGE_SCORE = 80
ALERT_PARTIAL_SCORE = 50


# -------------------------------
# Per-shape mappings
# -------------------------------
def status_from_score(score: Optional[float]) -> ConnectivityStatus:
    """
    Health score 0-100, higher is healthier.
    Negative or missing -> unknown.
    """
    if score is None or score < 0:
        return "unknown"
    if score >= SCORE_ONLINE:
        return "online"
    if score >= SCORE_LIMITED:
        return "limited"
    return "offline"


def status_from_anomaly_ratio(flagged: int, total: int) -> ConnectivityStatus:
    """
    flagged = anomalous or confirmed-blocked measurements.
    Zero measurements -> unknown.
    """
    if total <= 0:
        return "unknown"
    ratio = flagged / total
    if ratio > RATIO_OFFLINE:
        return "offline"
    if ratio > RATIO_LIMITED:
        return "limited"
    return "online"


def status_from_measurements(measurements: Sequence[OONIMeasurement]) -> ConnectivityStatus:
    flagged = sum(1 for m in measurements if m.anomaly or m.confirmed)
    return status_from_anomaly_ratio(flagged, len(measurements))


def status_from_traffic_delta(delta: Optional[float]) -> ConnectivityStatus:
    """
    Percentage change of traffic versus baseline.
    <= -50% is offline and is the major-outage override trigger.
    """
    if delta is None:
        return "unknown"
    if delta <= DELTA_OFFLINE:
        return "offline"
    if delta <= DELTA_LIMITED:
        return "limited"
    return "online"


def health_from_outage_score(score: Optional[float]) -> Optional[float]:
    """
    IODA outage scores grow with severity; flip them into a 0-100
    health score for status_from_score.
    """
    if score is None or score < 0:
        return None
    return max(0.0, 100.0 - min(float(score), 100.0))


def alert_category(score: Optional[float], direction: Optional[str] = None) -> AlertCategory:
    score = score or 0
    if score >= ALERT_OUTAGE_SCORE:
        return "outage"
    if score >= ALERT_PARTIAL_SCORE:
        return "partial"
    if direction == "up":
        return "restoration"
    return "info"


# -------------------------------
# Reconciliation helpers
# -------------------------------
def is_worse(a: ConnectivityStatus, b: ConnectivityStatus) -> bool:
    """
    True if a is strictly more severe than b.
    Any known status beats unknown; unknown never beats anything.
    """
    if a == "unknown":
        return False
    if b == "unknown":
        return True
    return SEVERITY[a] > SEVERITY[b]


def severity_max(statuses: Iterable[ConnectivityStatus]) -> ConnectivityStatus:
    worst: ConnectivityStatus = "unknown"
    for st in statuses:
        if is_worse(st, worst):
            worst = st
    return worst


def dashboard_status(statuses: Sequence[ConnectivityStatus]) -> ConnectivityStatus:
    """
    Headline status over tracked entities (unknowns excluded):
    - offline if more than half are offline
    - limited if more than a third are limited, or any is offline
    - online otherwise
    """
    known = [s for s in statuses if s != "unknown"]
    if not known:
        return "unknown"

    n = len(known)
    offline = known.count("offline")
    limited = known.count("limited")

    if offline > n / 2:
        return "offline"
    if limited > n / 3 or offline >= 1:
        return "limited"
    return "online"
