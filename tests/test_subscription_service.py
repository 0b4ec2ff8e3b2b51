"""Tests for subscription management."""

import pytest

from service.subscription.models import DeleteStatus, SubscribeStatus


class TestSubscribe:
    """Tests for SubscriptionService.subscribe."""

    @pytest.mark.asyncio
    async def test_snapshot_of_catalog_item(self, subscription_service, store):
        result = await subscription_service.subscribe("c1", "12345")
        assert result.status == SubscribeStatus.SUCCESS
        sub = result.subscription
        assert sub.bangumi_id == "12345"
        assert sub.channel_id == "c1"
        assert sub.weekday == 6
        assert sub.air_time == "23:30"
        assert sub.title_localized == "测试番剧"
        assert store.get(channel_id="c1") == [sub]

    @pytest.mark.asyncio
    async def test_non_numeric_id(self, subscription_service, store):
        result = await subscription_service.subscribe("c1", "abc")
        assert result.status == SubscribeStatus.INVALID_ID
        assert store.get() == []

    @pytest.mark.asyncio
    async def test_superscript_digit_id_rejected(self, subscription_service, store):
        result = await subscription_service.subscribe("c1", "²")
        assert result.status == SubscribeStatus.INVALID_ID
        assert store.get() == []

    @pytest.mark.asyncio
    async def test_not_in_catalog(self, subscription_service):
        result = await subscription_service.subscribe("c1", "999")
        assert result.status == SubscribeStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_duplicate_in_same_channel(self, subscription_service, store):
        await subscription_service.subscribe("c1", "12345")
        result = await subscription_service.subscribe("c1", "12345")
        assert result.status == SubscribeStatus.ALREADY
        assert len(store.get()) == 1

    @pytest.mark.asyncio
    async def test_same_item_in_other_channel(self, subscription_service, store):
        await subscription_service.subscribe("c1", "12345")
        result = await subscription_service.subscribe("c2", "12345")
        assert result.status == SubscribeStatus.SUCCESS
        assert len(store.get()) == 2

    @pytest.mark.asyncio
    async def test_item_without_air_date_not_subscribable(self, subscription_service, source):
        source.responses = {"onair": [{
            "title": "Localized Only",
            "broadcast": "周六 23:30",
            "sites": [{"site": "bangumi", "id": "777"}],
        }]}
        # 只有本地化时间的条目没有开播日期，不属于本季目录
        result = await subscription_service.subscribe("c1", "777")
        assert result.status == SubscribeStatus.NOT_FOUND


class TestManage:
    """Tests for listing, deleting and clearing subscriptions."""

    @pytest.mark.asyncio
    async def test_delete_by_index(self, subscription_service, store):
        await subscription_service.subscribe("c1", "12345")
        result = subscription_service.delete_by_index("c1", 1)
        assert result.status == DeleteStatus.SUCCESS
        assert result.removed.bangumi_id == "12345"
        assert store.get() == []

    def test_delete_removes_kth_in_store_order(self, subscription_service, store):
        for bangumi_id in ("1", "2", "3"):
            store.create(bangumi_id=bangumi_id, channel_id="c1", title=f"Anime {bangumi_id}", weekday=1, air_time="10:00")
        store.create(bangumi_id="2", channel_id="c2", title="Anime 2", weekday=1, air_time="10:00")

        result = subscription_service.delete_by_index("c1", 2)

        assert result.status == DeleteStatus.SUCCESS
        assert result.removed.bangumi_id == "2"
        assert result.removed.channel_id == "c1"
        assert [s.bangumi_id for s in store.get(channel_id="c1")] == ["1", "3"]
        assert [s.bangumi_id for s in store.get(channel_id="c2")] == ["2"]

    def test_delete_when_empty(self, subscription_service):
        result = subscription_service.delete_by_index("c1", 1)
        assert result.status == DeleteStatus.EMPTY

    @pytest.mark.asyncio
    async def test_delete_invalid_index_keeps_records(self, subscription_service, store):
        await subscription_service.subscribe("c1", "12345")
        for index in (0, 2, -1):
            result = subscription_service.delete_by_index("c1", index)
            assert result.status == DeleteStatus.INVALID_INDEX
            assert result.total == 1
        assert len(store.get()) == 1

    @pytest.mark.asyncio
    async def test_clear_only_affects_channel(self, subscription_service, store):
        await subscription_service.subscribe("c1", "12345")
        await subscription_service.subscribe("c2", "12345")
        assert subscription_service.clear("c1") == 1
        assert subscription_service.list_subscriptions("c1") == []
        assert len(subscription_service.list_subscriptions("c2")) == 1
