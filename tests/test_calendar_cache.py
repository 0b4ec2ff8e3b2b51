"""Tests for the calendar cache."""

import asyncio
from datetime import timedelta

import pytest

from service.bangumi.cache import CalendarCache, build_item
from tests.conftest import FakeCalendarSource, make_entry


class TestBuildItem:
    """Tests for turning raw entries into catalog items."""

    def test_basic_entry(self, now):
        item = build_item(make_entry(), now, "Asia/Shanghai")
        assert item.id == "12345"
        assert item.title == "Test Anime"
        assert item.title_localized == "测试番剧"
        assert item.weekday == 6
        assert item.time == "23:30"
        assert item.platforms == ("bilibili",)

    def test_id_from_url_preferred(self, now):
        entry = make_entry(sites=[{"site": "bangumi", "id": "1", "url": "https://bgm.tv/subject/999"}])
        assert build_item(entry, now).id == "999"

    def test_numeric_id_field(self, now):
        entry = make_entry(sites=[{"site": "bangumi", "id": 42}])
        assert build_item(entry, now).id == "42"

    def test_no_bangumi_site(self, now):
        entry = make_entry(sites=[{"site": "bilibili", "id": "ss1"}])
        assert build_item(entry, now) is None

    def test_previous_season_dropped(self, now):
        assert build_item(make_entry(broadcast="R/2024-04-06T23:30:00/P7D"), now) is None

    def test_missing_broadcast_dropped(self, now):
        assert build_item(make_entry(broadcast=""), now) is None

    def test_traditional_title_fallback(self, now):
        entry = make_entry(zh_hans=None)
        entry["titleTranslate"] = {"zh-Hant": ["測試"]}
        assert build_item(entry, now).title_localized == "測試"

    def test_no_translation(self, now):
        item = build_item(make_entry(zh_hans=None), now)
        assert item.title_localized == ""
        assert item.display_title == "Test Anime"

    def test_platforms_deduplicated(self, now):
        entry = make_entry(sites=[
            {"site": "bangumi", "id": "1"},
            {"site": "bilibili", "id": "a"},
            {"site": "bilibili", "id": "b"},
            {"id": "c"},
        ])
        assert build_item(entry, now).platforms == ("bilibili", "未知平台")


class TestCalendarCache:
    """Tests for CalendarCache refresh behaviour."""

    @pytest.mark.asyncio
    async def test_first_call_fetches_onair(self, cache, source):
        items = await cache.get_catalog()
        assert [item.id for item in items] == ["12345"]
        assert source.calls == ["onair"]
        assert cache.generation.number == 1

    @pytest.mark.asyncio
    async def test_fresh_catalog_served_from_cache(self, cache, source, clock):
        await cache.get_catalog()
        clock.now += timedelta(minutes=59)
        await cache.get_catalog()
        assert source.calls == ["onair"]

    @pytest.mark.asyncio
    async def test_stale_catalog_refetched(self, cache, source, clock):
        await cache.get_catalog()
        clock.now += timedelta(hours=1)
        await cache.get_catalog()
        assert source.calls == ["onair", "onair"]
        assert cache.generation.number == 2

    @pytest.mark.asyncio
    async def test_empty_catalog_never_fresh(self, clock):
        source = FakeCalendarSource({"onair": []})
        cache = CalendarCache(source, clock=clock)
        assert await cache.get_catalog() == []
        assert await cache.get_catalog() == []
        assert source.calls.count("onair") == 2

    @pytest.mark.asyncio
    async def test_falls_back_to_archive(self, clock):
        source = FakeCalendarSource({"archive/2024q3": [make_entry()]})
        cache = CalendarCache(source, clock=clock)
        items = await cache.get_catalog()
        assert len(items) == 1
        assert source.calls == ["onair", "archive/2024q3"]

    @pytest.mark.asyncio
    async def test_bad_shape_falls_back_to_archive(self, clock):
        source = FakeCalendarSource({
            "onair": {"unexpected": True},
            "archive/2024q3": {"items": [make_entry()]},
        })
        cache = CalendarCache(source, clock=clock)
        assert len(await cache.get_catalog()) == 1

    @pytest.mark.asyncio
    async def test_source_exception_falls_back(self, clock):
        source = FakeCalendarSource({
            "onair": RuntimeError("boom"),
            "archive/2024q3": [make_entry()],
        })
        cache = CalendarCache(source, clock=clock)
        assert len(await cache.get_catalog()) == 1

    @pytest.mark.asyncio
    async def test_all_sources_fail_returns_empty(self, clock):
        cache = CalendarCache(FakeCalendarSource(), clock=clock)
        assert await cache.get_catalog() == []
        assert cache.last_fetch_time is None

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_generation(self, cache, source, clock):
        await cache.get_catalog()
        previous = cache.generation
        source.responses = {}
        clock.now += timedelta(hours=2)
        items = await cache.get_catalog()
        assert [item.id for item in items] == ["12345"]
        assert cache.generation is previous

    @pytest.mark.asyncio
    async def test_duplicate_ids_keep_first(self, clock):
        source = FakeCalendarSource({"onair": [
            make_entry(title="First"),
            make_entry(title="Second"),
        ]})
        cache = CalendarCache(source, clock=clock)
        items = await cache.get_catalog()
        assert [item.title for item in items] == ["First"]

    @pytest.mark.asyncio
    async def test_malformed_entry_skipped(self, clock):
        source = FakeCalendarSource({"onair": ["not an entry", make_entry()]})
        cache = CalendarCache(source, clock=clock)
        assert len(await cache.get_catalog()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_refresh_collapsed(self, clock):
        release = asyncio.Event()

        class SlowSource(FakeCalendarSource):
            async def fetch(self, source_key):
                self.calls.append(source_key)
                await release.wait()
                return [make_entry()]

        source = SlowSource()
        cache = CalendarCache(source, clock=clock)
        readers = [asyncio.create_task(cache.get_catalog()) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*readers)
        assert source.calls == ["onair"]
        assert all(len(items) == 1 for items in results)
        assert cache.generation.number == 1
