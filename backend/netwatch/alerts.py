# netwatch/alerts.py
# ------------------------------------------------------------
# Alert feed builder.
#
# Alerts come from the IODA outage-alert endpoint (already tiered
# into outage / partial / restoration / info) and are kept as one
# JSON list under "netwatch:alerts:feed":
# - deduplicated by provider id (read flag survives re-fetches)
# - newest first
# - capped at `capacity`, oldest evicted
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .models import AlertEvent, AlertPayload, AppSettings, IODAAlert, dump, utcnow
from .reference import DEFAULT_REFERENCE, ReferenceData
from .settings_store import SettingsReader
from .sources.base import as_int
from .sources.ioda import IODAClient
from .store import KeyValueStore

logger = logging.getLogger(__name__)

ALERTS_PREFIX = "netwatch:alerts:"
DEFAULT_CAPACITY = 50

MESSAGE_KEYS = {
    "outage": "major_outage",
    "partial": "partial_outage",
    "restoration": "restoration",
    "info": "network_update",
}

_COUNTRY_SUFFIX = re.compile(r"\s*\(Islamic Republic Of\)", re.IGNORECASE)


class AlertFeed:
    def __init__(
        self,
        ioda: IODAClient,
        store: KeyValueStore,
        settings: SettingsReader,
        country: str = "IR",
        reference: ReferenceData = DEFAULT_REFERENCE,
        capacity: int = DEFAULT_CAPACITY,
        window_hours: int = 24,
        limit: int = 20,
        clock: Callable[[], datetime] = utcnow,
        prefix: str = ALERTS_PREFIX,
    ):
        self._ioda = ioda
        self._store = store
        self._settings = settings
        self.country = country
        self.reference = reference
        self.capacity = capacity
        self.window_hours = window_hours
        self.limit = limit
        self._clock = clock
        self._key = f"{prefix}feed"
        self._lock = asyncio.Lock()

    # --------------------------------------------------------
    # Storage
    # --------------------------------------------------------
    async def _load(self) -> List[AlertEvent]:
        try:
            raw = await self._store.get(self._key)
            rows = json.loads(raw) if raw else []
        except Exception as exc:  # noqa: BLE001
            logger.error("failed to read alert feed: %s", exc)
            return []

        out: List[AlertEvent] = []
        for row in rows if isinstance(rows, list) else []:
            try:
                out.append(AlertEvent.model_validate(row))
            except ValidationError:
                logger.warning("dropping malformed stored alert")
        return out

    async def _save(self, alerts: List[AlertEvent]) -> None:
        try:
            await self._store.set(self._key, json.dumps([dump(a) for a in alerts]))
        except Exception as exc:  # noqa: BLE001
            logger.error("failed to store alert feed: %s", exc)

    def _merge(self, current: List[AlertEvent], incoming: Iterable[AlertEvent]) -> List[AlertEvent]:
        by_id: Dict[str, AlertEvent] = {a.id: a for a in current}
        for alert in incoming:
            prev = by_id.get(alert.id)
            if prev is not None:
                alert = alert.model_copy(update={"read": prev.read})
            by_id[alert.id] = alert
        ordered = sorted(by_id.values(), key=lambda a: a.timestamp, reverse=True)
        return ordered[: self.capacity]

    # --------------------------------------------------------
    # Provider alert -> AlertEvent
    # --------------------------------------------------------
    def _wanted(self, alert: IODAAlert, prefs: AppSettings) -> bool:
        if alert.category in ("outage", "partial") and not prefs.alert_on_outage:
            return False
        if alert.category == "restoration" and not prefs.alert_on_restoration:
            return False
        return True

    def _to_event(self, alert: IODAAlert, prefs: AppSettings) -> AlertEvent:
        isp_id: Optional[str] = None
        region_id: Optional[str] = None
        if alert.entity_type == "asn":
            isp_id = self.reference.isp_for_asn(as_int(alert.entity_code))
        elif alert.entity_type == "region":
            region_id = alert.entity_code or None

        name = None
        if isp_id or region_id:
            name = self.reference.display_name(isp_id or region_id, prefs.language)
        if not name:
            name = _COUNTRY_SUFFIX.sub("", alert.entity_name).strip() or self.country

        return AlertEvent(
            id=alert.id,
            category=alert.category,
            payload=AlertPayload(
                message_key=MESSAGE_KEYS[alert.category],
                entity_name=name,
                entity_type=alert.entity_type,
                entity_code=alert.entity_code,
                score=alert.score,
            ),
            timestamp=datetime.fromtimestamp(alert.time, tz=timezone.utc),
            region_id=region_id,
            isp_id=isp_id,
        )

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------
    async def list_alerts(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AlertEvent]:
        """
        Pull new alerts for the window and return the merged feed.
        A provider failure leaves the stored feed untouched.
        """
        until = until or self._clock()
        since = since or until - timedelta(hours=self.window_hours)

        fetched = await self._ioda.fetch_alerts(self.country, since, until, limit or self.limit)

        async with self._lock:
            current = await self._load()
            if not fetched.ok:
                logger.warning("alert source unavailable (%s), serving stored feed", fetched.reason)
                return current

            prefs = await self._settings.load()
            incoming = [self._to_event(a, prefs) for a in fetched.items if self._wanted(a, prefs)]
            merged = self._merge(current, incoming)
            await self._save(merged)
            return merged

    async def alerts(self) -> List[AlertEvent]:
        """Stored feed without contacting the provider."""
        return await self._load()

    async def add(self, *events: AlertEvent) -> List[AlertEvent]:
        async with self._lock:
            merged = self._merge(await self._load(), events)
            await self._save(merged)
            return merged

    async def mark_read(self, alert_id: str) -> bool:
        async with self._lock:
            alerts = await self._load()
            found = False
            for a in alerts:
                if a.id == alert_id:
                    a.read = True
                    found = True
            if found:
                await self._save(alerts)
            return found

    async def mark_all_read(self) -> int:
        async with self._lock:
            alerts = await self._load()
            changed = 0
            for a in alerts:
                if not a.read:
                    a.read = True
                    changed += 1
            if changed:
                await self._save(alerts)
            return changed

    async def clear_all(self) -> None:
        async with self._lock:
            try:
                await self._store.remove(self._key)
            except Exception as exc:  # noqa: BLE001
                logger.error("failed to clear alert feed: %s", exc)

    async def unread_count(self) -> int:
        return sum(1 for a in await self._load() if not a.read)
