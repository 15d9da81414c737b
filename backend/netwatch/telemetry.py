# netwatch/telemetry.py
# ------------------------------------------------------------
# Anonymous crowdsourced connectivity reports.
#
# Privacy contract:
# - nothing happens at all unless telemetry is enabled
# - the only identifier is a random opaque id generated locally
# - location is a city label; coordinates are rejected
#
# Storage: a JSON list under "netwatch:telemetry:reports" acting as
# a ring buffer (oldest dropped at capacity). The remote POST runs
# as a background task; the local copy is the durable record.
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
import json
import logging
import re
import uuid
from typing import Any, Dict, List, Optional, Set

import httpx
from pydantic import ValidationError

from .errors import TelemetryRejected
from .models import ConnectivityStatus, TelemetryReport, dump
from .settings_store import SettingsReader
from .store import KeyValueStore

logger = logging.getLogger(__name__)

TELEMETRY_PREFIX = "netwatch:telemetry:"
DEFAULT_CAPACITY = 100

# "35.69, 51.39" / "35.6892 51.3890" / "N35.6 E51.3"
_COORDINATES = re.compile(
    r"[NS]?\s*-?\d{1,3}\.\d+\s*[NS]?\s*[,; ]\s*[EW]?\s*-?\d{1,3}\.\d+\s*[EW]?",
    re.IGNORECASE,
)


def looks_like_coordinates(label: str) -> bool:
    return bool(_COORDINATES.search(label))


class TelemetryReporter:
    def __init__(
        self,
        store: KeyValueStore,
        settings: SettingsReader,
        http: Optional[httpx.AsyncClient] = None,
        endpoint: Optional[str] = None,
        capacity: int = DEFAULT_CAPACITY,
        prefix: str = TELEMETRY_PREFIX,
    ):
        self._store = store
        self._settings = settings
        self._http = http
        self._endpoint = endpoint
        self.capacity = capacity
        self._reports_key = f"{prefix}reports"
        self._device_key = f"{prefix}device_id"
        # guards the read-modify-write of the ring buffer and device id
        self._lock = asyncio.Lock()
        # used when the store cannot hold the device id
        self._fallback_device_id: Optional[str] = None
        self._pending: Set[asyncio.Task] = set()

    async def device_id(self) -> str:
        """
        Locally generated opaque id (no hardware identifiers).
        """
        async with self._lock:
            try:
                existing = await self._store.get(self._device_key)
                if existing:
                    return existing
                new_id = uuid.uuid4().hex[:16]
                await self._store.set(self._device_key, new_id)
                return new_id
            except Exception as exc:  # noqa: BLE001
                logger.error("device id unavailable from store, using process id: %s", exc)
                if self._fallback_device_id is None:
                    self._fallback_device_id = uuid.uuid4().hex[:16]
                return self._fallback_device_id

    async def report_connectivity(
        self,
        status: ConnectivityStatus,
        isp_id: Optional[str] = None,
        city: Optional[str] = None,
        latency: Optional[float] = None,
    ) -> Optional[TelemetryReport]:
        """
        Record a report locally and schedule the remote send.

        Returns the stored report, or None when telemetry is disabled.
        Raises TelemetryRejected if the input breaks the privacy
        contract (nothing is stored or sent in that case).
        """
        if not await self._settings.telemetry_enabled():
            return None

        if city is not None:
            city = city.strip() or None
        if city and looks_like_coordinates(city):
            raise TelemetryRejected("city must be a place name, not coordinates")

        try:
            report = TelemetryReport(
                status=status,
                device_id=await self.device_id(),
                isp_id=isp_id,
                city=city,
                latency_ms=latency,
            )
        except ValidationError as exc:
            raise TelemetryRejected(str(exc)) from exc

        await self._append(report)
        self._schedule_send(report)
        return report

    async def _append(self, report: TelemetryReport) -> None:
        async with self._lock:
            reports = await self._load_raw()
            reports.append(dump(report))
            # ring buffer: keep the newest `capacity`
            reports = reports[-self.capacity:]
            try:
                await self._store.set(self._reports_key, json.dumps(reports))
            except Exception as exc:  # noqa: BLE001
                logger.error("failed to store telemetry report: %s", exc)

    def _schedule_send(self, report: TelemetryReport) -> None:
        if not self._endpoint or self._http is None:
            logger.debug("telemetry endpoint not configured, kept local only")
            return
        task = asyncio.create_task(self._send(report))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, report: TelemetryReport) -> None:
        try:
            resp = await self._http.post(self._endpoint, json=dump(report))
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            # best effort: the local ring buffer keeps the record
            logger.warning("telemetry send failed: %s", exc)

    async def flush(self) -> None:
        """Wait for sends still in flight (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _load_raw(self) -> List[Dict[str, Any]]:
        try:
            raw = await self._store.get(self._reports_key)
            data = json.loads(raw) if raw else []
        except Exception as exc:  # noqa: BLE001
            logger.error("failed to read local telemetry: %s", exc)
            return []
        return data if isinstance(data, list) else []

    async def get_local_reports(self) -> List[TelemetryReport]:
        out: List[TelemetryReport] = []
        for row in await self._load_raw():
            try:
                out.append(TelemetryReport.model_validate(row))
            except ValidationError:
                continue
        return out

    async def clear_local_reports(self) -> None:
        async with self._lock:
            try:
                await self._store.remove(self._reports_key)
            except Exception as exc:  # noqa: BLE001
                logger.error("failed to clear local telemetry: %s", exc)
