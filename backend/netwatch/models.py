# netwatch/models.py
# ------------------------------------------------------------
# Core domain models for the connectivity aggregation backend
# ------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal, Dict, Any, List, Generic, TypeVar
from datetime import datetime, timezone


# -------------------------------
# Shared helpers & enums
# -------------------------------
ConnectivityStatus = Literal["online", "limited", "offline", "unknown"]
ISPType = Literal["mobile", "fixed", "both"]
AlertCategory = Literal["outage", "partial", "restoration", "info"]
Language = Literal["en", "fa"]
SourceState = Literal["live", "cached", "stale", "failed"]

T = TypeVar("T")


def utcnow() -> datetime:
    """
    Always return timezone-aware UTC datetime.
    """
    return datetime.now(timezone.utc)


# -------------------------------
# Reference entities
# -------------------------------
class Region(BaseModel):
    """
    A province. Reference fields are static; only status and
    last_updated are written by the aggregation engine.
    """

    id: str
    name_en: str
    name_fa: str
    status: ConnectivityStatus = "unknown"
    last_updated: datetime = Field(default_factory=utcnow)
    population: Optional[int] = None


class ISP(BaseModel):
    """
    An internet service provider / mobile network operator.
    """

    id: str
    name_en: str
    name_fa: str
    type: ISPType
    status: ConnectivityStatus = "unknown"
    last_updated: datetime = Field(default_factory=utcnow)
    asns: List[int] = Field(default_factory=list)


# -------------------------------
# Provider payloads (transient)
# -------------------------------
class OONIMeasurement(BaseModel):
    measurement_uid: str
    probe_cc: str = ""
    probe_asn: Optional[int] = None
    test_name: str = ""
    measurement_start_time: Optional[str] = None
    anomaly: bool = False
    confirmed: bool = False
    failure: bool = False


class DailyAggregate(BaseModel):
    day: str
    anomaly_count: int = 0
    confirmed_count: int = 0
    measurement_count: int = 0


class IODAOutageEvent(BaseModel):
    id: str
    entity_type: str = "unknown"
    entity_code: str = ""
    entity_name: str = ""
    start_time: int = 0
    end_time: Optional[int] = None
    score: float = 0.0
    datasource: str = ""


class IODAAlert(BaseModel):
    """
    Outage alert already classified into an alert tier.
    """

    id: str
    category: AlertCategory
    score: float = 0.0
    direction: Optional[str] = None
    time: int = 0
    entity_type: str = "country"
    entity_code: str = ""
    entity_name: str = ""


class TrafficAnomaly(BaseModel):
    timestamp: datetime
    traffic_change: float = 0.0
    country_code: str = ""


class RIPEProbe(BaseModel):
    id: int
    country_code: str = ""
    status: str = "unknown"
    last_connected: Optional[int] = None


class ProbeStatus(BaseModel):
    connected: int = 0
    disconnected: int = 0
    total: int = 0
    # 0-100, -1 when there are no probes at all
    health: int = -1


class SignalPoint(BaseModel):
    timestamp: int
    value: float


# -------------------------------
# Tagged source result
# -------------------------------
@dataclass
class SourceResult(Generic[T]):
    """
    Outcome of one provider call.

    ok=True  -> items holds the (possibly empty) parsed payload
    ok=False -> reason explains why the provider could not be used
    """

    source: str
    ok: bool
    items: List[T] = field(default_factory=list)
    reason: Optional[str] = None

    @classmethod
    def success(cls, source: str, items: List[T]) -> "SourceResult[T]":
        return cls(source=source, ok=True, items=items)

    @classmethod
    def failure(cls, source: str, reason: str) -> "SourceResult[T]":
        return cls(source=source, ok=False, reason=reason)


class SourceHealth(BaseModel):
    status: SourceState
    reason: Optional[str] = None
    items: int = 0


# -------------------------------
# Aggregation output
# -------------------------------
class StatusCounts(BaseModel):
    online: int = 0
    limited: int = 0
    offline: int = 0
    unknown: int = 0


class DashboardStats(BaseModel):
    regions_online: int = 0
    regions_total: int = 0
    isps_online: int = 0
    isps_total: int = 0
    active_outages: int = 0
    overall_status: ConnectivityStatus = "unknown"
    last_updated: datetime = Field(default_factory=utcnow)


class AggregationResult(BaseModel):
    isps: List[ISP] = Field(default_factory=list)
    regions: List[Region] = Field(default_factory=list)
    counts: StatusCounts = Field(default_factory=StatusCounts)

    # severity-max over all known children
    overall_status: ConnectivityStatus = "unknown"
    stats: DashboardStats = Field(default_factory=DashboardStats)

    traffic_override: bool = False
    sources: Dict[str, SourceHealth] = Field(default_factory=dict)

    synthetic: bool = False
    stale: bool = False
    timestamp: datetime = Field(default_factory=utcnow)


# -------------------------------
# Timeline
# -------------------------------
class TimelinePoint(BaseModel):
    timestamp: datetime
    value: float = Field(ge=0.0, le=100.0)
    status: ConnectivityStatus


class Timeline(BaseModel):
    points: List[TimelinePoint] = Field(default_factory=list)
    synthetic: bool = False
    stale: bool = False


# -------------------------------
# Alerts
# -------------------------------
class AlertPayload(BaseModel):
    """
    Structured alert content. The display layer turns message_key
    plus parameters into localized text.
    """

    message_key: str
    entity_name: str = ""
    entity_type: str = "country"
    entity_code: str = ""
    score: float = 0.0


class AlertEvent(BaseModel):
    id: str
    category: AlertCategory
    payload: AlertPayload
    timestamp: datetime = Field(default_factory=utcnow)
    read: bool = False

    region_id: Optional[str] = None
    isp_id: Optional[str] = None


# -------------------------------
# Telemetry
# -------------------------------
class TelemetryReport(BaseModel):
    """
    Anonymous crowdsourced connectivity report.

    Only city-level labels; no coordinates, no hardware identifiers.
    """

    model_config = ConfigDict(extra="forbid")

    timestamp: datetime = Field(default_factory=utcnow)
    status: ConnectivityStatus
    device_id: str
    isp_id: Optional[str] = None
    city: Optional[str] = Field(default=None, max_length=80)
    latency_ms: Optional[float] = Field(default=None, ge=0.0)


# -------------------------------
# Host-owned settings (read only)
# -------------------------------
class AppSettings(BaseModel):
    telemetry_enabled: bool = True
    alert_on_outage: bool = True
    alert_on_restoration: bool = True
    language: Language = "en"


def dump(obj: BaseModel) -> Dict[str, Any]:
    """
    JSON-safe dict for storage/caching.
    """
    return obj.model_dump(mode="json")
