from __future__ import annotations

import pytest

from netwatch.models import DailyAggregate
from netwatch.timeline import points_from_aggregates

AGGREGATION = {"result": [
    {"measurement_start_day": "2024-01-02", "anomaly_count": 10, "confirmed_count": 0, "measurement_count": 100},
    {"measurement_start_day": "2024-01-01", "anomaly_count": 50, "confirmed_count": 20, "measurement_count": 100},
    {"measurement_start_day": "2024-01-03", "anomaly_count": 0, "confirmed_count": 0, "measurement_count": 0},
]}


def test_points_from_aggregates():
    rows = [DailyAggregate.model_validate(r) for r in AGGREGATION["result"]]

    points = points_from_aggregates(rows)

    assert [p.timestamp.day for p in points] == [1, 2]
    assert [p.value for p in points] == [30.0, 90.0]
    assert [p.status for p in points] == ["offline", "online"]


def test_flagged_count_never_exceeds_measurements():
    rows = [DailyAggregate(day="2024-01-01", anomaly_count=8, confirmed_count=8, measurement_count=10)]

    assert points_from_aggregates(rows)[0].value == 0.0


class TestTimelineService:
    @pytest.mark.asyncio
    async def test_live_series(self, providers, make_services):
        providers.ooni_aggregation = AGGREGATION
        svc = make_services()

        timeline = await svc.timeline.get_timeline(7)

        assert not timeline.synthetic and not timeline.stale
        assert [p.value for p in timeline.points] == [30.0, 90.0]

    @pytest.mark.asyncio
    async def test_cached_within_expiry(self, providers, make_services):
        providers.ooni_aggregation = AGGREGATION
        svc = make_services()

        await svc.timeline.get_timeline(7)
        await svc.timeline.get_timeline(7)

        assert providers.count("/aggregation") == 1

    @pytest.mark.asyncio
    async def test_failure_without_cache_is_synthetic(self, providers, make_services):
        providers.ooni_aggregation = 500
        svc = make_services()

        timeline = await svc.timeline.get_timeline(2)

        assert timeline.synthetic
        assert len(timeline.points) == 2 * 24 // 4 + 1
        assert all(0 <= p.value <= 100 for p in timeline.points)
        assert timeline.points == sorted(timeline.points, key=lambda p: p.timestamp)

    @pytest.mark.asyncio
    async def test_failure_with_expired_cache_is_stale(self, providers, make_services):
        providers.ooni_aggregation = AGGREGATION
        svc = make_services(timeline_cache_sec=0)
        await svc.timeline.get_timeline(7)

        providers.ooni_aggregation = 502
        timeline = await svc.timeline.get_timeline(7)

        assert timeline.stale
        assert not timeline.synthetic
        assert [p.value for p in timeline.points] == [30.0, 90.0]


class TestSignals:
    @pytest.mark.asyncio
    async def test_series_passthrough(self, providers, make_services):
        providers.ioda_signals = {"data": {"bgp": {"values": [[1, 10.0], [2, 12.5]]}}}
        svc = make_services()

        points = await svc.timeline.get_signals()

        assert [p.value for p in points] == [10.0, 12.5]
        assert providers.calls[-1].url.path.endswith("/signals/raw/country/IR")

    @pytest.mark.asyncio
    async def test_failure_is_empty(self, providers, make_services):
        providers.ioda_signals = 500
        svc = make_services()

        assert await svc.timeline.get_signals("asn", "44244") == []
