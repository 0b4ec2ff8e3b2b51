"""Tests for the JSON subscription store."""

import json

import pytest

from service.subscription.store import JsonSubscriptionStore, StoreError


def _create(store, bangumi_id="1", channel_id="c1", weekday=6, air_time="23:30"):
    return store.create(
        bangumi_id=bangumi_id,
        channel_id=channel_id,
        title=f"Anime {bangumi_id}",
        weekday=weekday,
        air_time=air_time,
    )


class TestJsonSubscriptionStore:
    """Tests for JsonSubscriptionStore."""

    def test_create_assigns_increasing_ids(self, store):
        first = _create(store, "1")
        second = _create(store, "2")
        assert (first.id, second.id) == (1, 2)

    def test_get_filters_by_conjunction(self, store):
        _create(store, "1", "c1", weekday=6)
        _create(store, "2", "c1", weekday=1)
        _create(store, "1", "c2", weekday=6)
        result = store.get(channel_id="c1", weekday=6)
        assert [(s.bangumi_id, s.channel_id) for s in result] == [("1", "c1")]

    def test_get_without_filters_returns_all_in_order(self, store):
        _create(store, "1")
        _create(store, "2")
        assert [s.bangumi_id for s in store.get()] == ["1", "2"]

    def test_unknown_filter_rejected(self, store):
        with pytest.raises(ValueError):
            store.get(title="x")

    def test_remove_returns_count(self, store):
        _create(store, "1", "c1")
        _create(store, "2", "c1")
        _create(store, "3", "c2")
        assert store.remove(channel_id="c1") == 2
        assert [s.bangumi_id for s in store.get()] == ["3"]

    def test_remove_without_filters_is_noop(self, store):
        _create(store)
        assert store.remove() == 0
        assert len(store.get()) == 1

    def test_persists_to_file(self, tmp_path):
        path = tmp_path / "subs.json"
        store = JsonSubscriptionStore(str(path))
        _create(store, "1")
        _create(store, "2")
        store.remove(bangumi_id="1")

        reloaded = JsonSubscriptionStore(str(path))
        subs = reloaded.get()
        assert [s.bangumi_id for s in subs] == ["2"]
        # 删除后 id 不复用
        assert _create(reloaded, "3").id == 3

    def test_file_is_readable_json(self, tmp_path):
        path = tmp_path / "subs.json"
        _create(JsonSubscriptionStore(str(path)), "1")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["next_id"] == 2
        assert data["records"][0]["bangumi_id"] == "1"
        assert not (tmp_path / "subs.json.tmp").exists()

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "subs.json"
        _create(JsonSubscriptionStore(str(path)))
        assert path.exists()

    def test_corrupt_file_raises_store_error(self, tmp_path):
        path = tmp_path / "subs.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonSubscriptionStore(str(path))
        with pytest.raises(StoreError):
            store.get(weekday=1)

    def test_unwritable_path_raises_store_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonSubscriptionStore(str(blocker / "subs.json"))
        with pytest.raises(StoreError):
            _create(store)
        assert store.get() == []
