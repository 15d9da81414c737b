# netwatch/settings_store.py
# ------------------------------------------------------------
# Read-only view of host-owned settings.
#
# The host app persists these flags under "netwatch:settings:<name>"
# as JSON scalars ("true", "false", "\"fa\""). The core only reads
# them; missing or malformed values fall back to defaults.
# ------------------------------------------------------------

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from pydantic import ValidationError

from .models import AppSettings
from .store import KeyValueStore

logger = logging.getLogger(__name__)

SETTINGS_PREFIX = "netwatch:settings:"


class SettingsReader:
    def __init__(self, store: KeyValueStore, prefix: str = SETTINGS_PREFIX):
        self._store = store
        self._prefix = prefix

    async def _read(self, name: str) -> Any:
        try:
            raw = await self._store.get(f"{self._prefix}{name}")
        except Exception as exc:  # noqa: BLE001
            logger.error("settings read failed for %s: %s", name, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            # bare strings like fa / en are accepted too
            return raw

    async def load(self) -> AppSettings:
        values: Dict[str, Any] = {}
        for name in AppSettings.model_fields:
            v = await self._read(name)
            if v is not None:
                values[name] = v

        try:
            return AppSettings(**values)
        except ValidationError as exc:
            logger.warning("ignoring malformed settings: %s", exc)
            # keep whichever individual values are valid
            out = AppSettings()
            for name, v in values.items():
                try:
                    out = AppSettings(**{**out.model_dump(), name: v})
                except ValidationError:
                    continue
            return out

    async def telemetry_enabled(self) -> bool:
        return (await self.load()).telemetry_enabled
