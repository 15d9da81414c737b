from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import IODA_URL, set_setting
from netwatch.alerts import AlertFeed
from netwatch.models import AlertEvent, AlertPayload
from netwatch.settings_store import SettingsReader
from netwatch.sources.ioda import IODAClient
from netwatch.store import MemoryStore


def _alert(aid: str, score: float, time: int, direction=None, entity=None):
    row = {"id": aid, "score": score, "time": time}
    if direction:
        row["direction"] = direction
    if entity:
        row["entity"] = entity
    return row


def _event(i: int) -> AlertEvent:
    return AlertEvent(
        id=f"local-{i}",
        category="info",
        payload=AlertPayload(message_key="network_update"),
        timestamp=datetime.fromtimestamp(1_700_000_000 + i, tz=timezone.utc),
    )


class TestListAlerts:
    @pytest.mark.asyncio
    async def test_mapping_and_ordering(self, providers, make_services):
        providers.ioda_alerts = {"data": [
            _alert("a1", 90, 100, entity={"type": "country", "code": "IR", "name": "Iran (Islamic Republic Of)"}),
            _alert("a2", 60, 300, entity={"type": "asn", "code": "44244", "name": "MTN Irancell"}),
            _alert("a3", 10, 200, direction="up", entity={"type": "region", "code": "IR.TH", "name": "Tehran"}),
        ]}
        svc = make_services()

        alerts = await svc.alerts.list_alerts()

        assert [a.id for a in alerts] == ["a2", "a3", "a1"]
        by_id = {a.id: a for a in alerts}
        assert by_id["a1"].category == "outage"
        assert by_id["a1"].payload.message_key == "major_outage"
        assert by_id["a1"].payload.entity_name == "Iran"
        assert by_id["a2"].category == "partial"
        assert by_id["a2"].isp_id == "irancell"
        assert by_id["a2"].region_id is None
        assert by_id["a2"].payload.entity_name == "Irancell (MTN)"
        assert by_id["a3"].category == "restoration"
        assert by_id["a3"].region_id == "IR.TH"
        assert not any(a.read for a in alerts)

    @pytest.mark.asyncio
    async def test_persian_display_names(self, providers, make_services, store):
        await set_setting(store, "language", "fa")
        providers.ioda_alerts = {"data": [
            _alert("a1", 90, 100, entity={"type": "asn", "code": "197207"}),
        ]}
        svc = make_services()

        alerts = await svc.alerts.list_alerts()

        assert alerts[0].payload.entity_name == "همراه اول"

    @pytest.mark.asyncio
    async def test_refetch_deduplicates_and_keeps_read_flag(self, providers, make_services):
        providers.ioda_alerts = {"data": [_alert("a1", 90, 100), _alert("a2", 90, 200)]}
        svc = make_services()

        await svc.alerts.list_alerts()
        assert await svc.alerts.mark_read("a1")
        providers.ioda_alerts = {"data": [_alert("a1", 95, 100), _alert("a3", 90, 300)]}
        alerts = await svc.alerts.list_alerts()

        assert [a.id for a in alerts] == ["a3", "a2", "a1"]
        assert {a.id: a.read for a in alerts} == {"a3": False, "a2": False, "a1": True}
        assert await svc.alerts.unread_count() == 2

    @pytest.mark.asyncio
    async def test_provider_failure_keeps_stored_feed(self, providers, make_services):
        providers.ioda_alerts = {"data": [_alert("a1", 90, 100)]}
        svc = make_services()
        await svc.alerts.list_alerts()

        providers.ioda_alerts = 503
        alerts = await svc.alerts.list_alerts()

        assert [a.id for a in alerts] == ["a1"]

    @pytest.mark.asyncio
    async def test_outage_alerts_can_be_switched_off(self, providers, make_services, store):
        await set_setting(store, "alert_on_outage", False)
        providers.ioda_alerts = {"data": [
            _alert("a1", 90, 100),
            _alert("a2", 60, 200),
            _alert("a3", 10, 300, direction="up"),
        ]}
        svc = make_services()

        alerts = await svc.alerts.list_alerts()

        assert [a.category for a in alerts] == ["restoration"]

    @pytest.mark.asyncio
    async def test_restoration_alerts_can_be_switched_off(self, providers, make_services, store):
        await set_setting(store, "alert_on_restoration", False)
        providers.ioda_alerts = {"data": [_alert("a1", 90, 100), _alert("a3", 10, 300, direction="up")]}
        svc = make_services()

        alerts = await svc.alerts.list_alerts()

        assert [a.id for a in alerts] == ["a1"]


class TestFeedState:
    @pytest.mark.asyncio
    async def test_capacity_evicts_oldest(self, make_services):
        svc = make_services(alert_capacity=50)

        await svc.alerts.add(*[_event(i) for i in range(60)])
        alerts = await svc.alerts.alerts()

        assert len(alerts) == 50
        assert alerts[0].id == "local-59"
        assert alerts[-1].id == "local-10"

    @pytest.mark.asyncio
    async def test_read_state_changes_never_drop_alerts(self, make_services):
        svc = make_services()
        await svc.alerts.add(*[_event(i) for i in range(5)])

        assert await svc.alerts.mark_read("local-2")
        assert not await svc.alerts.mark_read("missing")
        assert await svc.alerts.unread_count() == 4

        assert await svc.alerts.mark_all_read() == 4
        assert await svc.alerts.mark_all_read() == 0
        alerts = await svc.alerts.alerts()
        assert len(alerts) == 5
        assert all(a.read for a in alerts)

    @pytest.mark.asyncio
    async def test_clear_all(self, make_services):
        svc = make_services()
        await svc.alerts.add(_event(1))

        await svc.alerts.clear_all()

        assert await svc.alerts.alerts() == []
        assert await svc.alerts.unread_count() == 0


class _RemoveFailsStore(MemoryStore):
    async def remove(self, *keys):
        raise ConnectionError("store down")


@pytest.mark.asyncio
async def test_clear_all_survives_store_outage(providers):
    store = _RemoveFailsStore()
    feed = AlertFeed(IODAClient(providers.client(), IODA_URL), store, SettingsReader(store))
    await feed.add(_event(1))

    await feed.clear_all()

    assert [a.id for a in await feed.alerts()] == ["local-1"]
