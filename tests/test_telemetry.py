from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from conftest import TELEMETRY_URL, set_setting
from netwatch.errors import TelemetryRejected
from netwatch.settings_store import SettingsReader
from netwatch.store import MemoryStore
from netwatch.telemetry import TelemetryReporter, looks_like_coordinates


class YieldingStore(MemoryStore):
    """Suspends on every call, like a networked store."""

    async def get(self, key):
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key, value):
        await asyncio.sleep(0)
        await super().set(key, value)


class TelemetryDownStore(MemoryStore):
    """Settings readable, every telemetry key unavailable."""

    async def get(self, key):
        if key.startswith("netwatch:telemetry:"):
            raise ConnectionError("store down")
        return await super().get(key)

    async def set(self, key, value):
        if key.startswith("netwatch:telemetry:"):
            raise ConnectionError("store down")
        await super().set(key, value)

    async def remove(self, *keys):
        raise ConnectionError("store down")


class TestPrivacyGate:
    @pytest.mark.asyncio
    async def test_disabled_does_nothing(self, providers, make_services, store):
        await set_setting(store, "telemetry_enabled", False)
        svc = make_services()

        result = await svc.telemetry.report_connectivity("offline", isp_id="mci", city="Tehran")

        assert result is None
        assert await svc.telemetry.get_local_reports() == []
        assert providers.count(TELEMETRY_URL) == 0
        assert await store.get("netwatch:telemetry:device_id") is None

    @pytest.mark.asyncio
    async def test_enabled_records_and_sends(self, providers, make_services):
        svc = make_services()

        report = await svc.telemetry.report_connectivity("limited", isp_id="mci", city=" Shiraz ", latency=120.5)
        await svc.telemetry.flush()

        assert report.city == "Shiraz"
        stored = await svc.telemetry.get_local_reports()
        assert [r.status for r in stored] == ["limited"]
        assert providers.count(TELEMETRY_URL) == 1
        body = json.loads(providers.calls[-1].content)
        assert body["isp_id"] == "mci"
        assert body["latency_ms"] == 120.5
        assert not {"lat", "lon", "latitude", "longitude"} & set(body)


class TestDelivery:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", [500, httpx.ConnectError("unreachable")])
    async def test_send_failure_is_swallowed(self, providers, make_services, failure):
        providers.telemetry = failure
        svc = make_services()

        report = await svc.telemetry.report_connectivity("online")
        await svc.telemetry.flush()

        assert report is not None
        assert len(await svc.telemetry.get_local_reports()) == 1

    @pytest.mark.asyncio
    async def test_no_endpoint_keeps_local_only(self, providers, make_services):
        svc = make_services(telemetry_endpoint=None)

        await svc.telemetry.report_connectivity("online")

        assert providers.count(TELEMETRY_URL) == 0
        assert len(await svc.telemetry.get_local_reports()) == 1

    @pytest.mark.asyncio
    async def test_ring_buffer_keeps_newest(self, make_services):
        svc = make_services(telemetry_capacity=3)

        for ms in range(5):
            await svc.telemetry.report_connectivity("online", latency=float(ms))

        stored = await svc.telemetry.get_local_reports()
        assert [r.latency_ms for r in stored] == [2.0, 3.0, 4.0]

    @pytest.mark.asyncio
    async def test_clear_local_reports(self, make_services):
        svc = make_services()
        await svc.telemetry.report_connectivity("online")

        await svc.telemetry.clear_local_reports()

        assert await svc.telemetry.get_local_reports() == []


class TestReportContent:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("city", ["35.6892, 51.3890", "N35.69 E51.39", "35.69 51.39"])
    async def test_coordinates_rejected(self, providers, make_services, city):
        svc = make_services()

        with pytest.raises(TelemetryRejected):
            await svc.telemetry.report_connectivity("online", city=city)

        assert await svc.telemetry.get_local_reports() == []
        assert providers.count(TELEMETRY_URL) == 0

    @pytest.mark.asyncio
    async def test_negative_latency_rejected(self, make_services):
        svc = make_services()

        with pytest.raises(TelemetryRejected):
            await svc.telemetry.report_connectivity("online", latency=-1)

    @pytest.mark.asyncio
    async def test_device_id_is_opaque_and_stable(self, make_services):
        svc = make_services()

        first = await svc.telemetry.report_connectivity("online")
        second = await svc.telemetry.report_connectivity("offline")

        assert first.device_id == second.device_id
        assert len(first.device_id) == 16
        int(first.device_id, 16)


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_overlapping_reports_are_all_kept(self):
        store = YieldingStore()
        reporter = TelemetryReporter(store, SettingsReader(store))

        await asyncio.gather(*(
            reporter.report_connectivity("online", city=f"c{i}") for i in range(5)
        ))

        stored = await reporter.get_local_reports()
        assert sorted(r.city for r in stored) == [f"c{i}" for i in range(5)]
        assert len({r.device_id for r in stored}) == 1

    @pytest.mark.asyncio
    async def test_slow_endpoint_does_not_hold_the_caller(self, providers, make_services):
        providers.delay["telemetry"] = 0.5
        svc = make_services()

        report = await asyncio.wait_for(svc.telemetry.report_connectivity("online"), timeout=0.2)
        assert report is not None
        assert len(await svc.telemetry.get_local_reports()) == 1

        await svc.telemetry.flush()
        assert providers.count(TELEMETRY_URL) == 1


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_report_survives_store_outage(self):
        store = TelemetryDownStore()
        reporter = TelemetryReporter(store, SettingsReader(store))

        first = await reporter.report_connectivity("online", city="Tehran")
        second = await reporter.report_connectivity("limited")

        assert first is not None and second is not None
        assert first.device_id == second.device_id
        assert await reporter.get_local_reports() == []

    @pytest.mark.asyncio
    async def test_clear_survives_store_outage(self):
        store = TelemetryDownStore()
        reporter = TelemetryReporter(store, SettingsReader(store))

        await reporter.clear_local_reports()

        assert await reporter.get_local_reports() == []


@pytest.mark.parametrize("label,expected", [
    ("Tehran", False),
    ("Karaj 2", False),
    ("35.6892,51.3890", True),
    ("-33.9; 18.4", True),
])
def test_looks_like_coordinates(label, expected):
    assert looks_like_coordinates(label) is expected
