import json
import os
from typing import Any, Dict, List, Optional, Protocol

from pydantic import ValidationError

from infra.logger import logger
from .models import Subscription

FILTER_KEYS = frozenset({"bangumi_id", "channel_id", "weekday", "id"})


class StoreError(Exception):
    """记录存储不可用（读写失败、文件损坏）"""


class SubscriptionStore(Protocol):
    def get(self, **filters: Any) -> List[Subscription]: ...

    def create(self, **fields: Any) -> Subscription: ...

    def remove(self, **filters: Any) -> int: ...


def _check_filters(filters: Dict[str, Any]):
    unknown = set(filters) - FILTER_KEYS
    if unknown:
        raise ValueError(f"不支持的过滤字段: {', '.join(sorted(unknown))}")


class JsonSubscriptionStore:
    """
    以 JSON 文件保存的订阅记录，按创建顺序返回
    json_file 为空时只保存在内存中
    """

    def __init__(self, json_file: Optional[str] = "cache/bangumi_subscriptions.json"):
        self.json_file = json_file
        self._records: List[Subscription] = []
        self._next_id = 1
        self._loaded = False

    def get(self, **filters: Any) -> List[Subscription]:
        _check_filters(filters)
        self._ensure_loaded()
        return [r for r in self._records if self._matches(r, filters)]

    def create(self, **fields: Any) -> Subscription:
        self._ensure_loaded()
        try:
            record = Subscription(id=self._next_id, **fields)
        except ValidationError as e:
            raise ValueError(f"订阅记录字段不合法: {e}") from e

        self._save([*self._records, record], self._next_id + 1)
        self._records.append(record)
        self._next_id += 1
        return record

    def remove(self, **filters: Any) -> int:
        """删除匹配的记录，返回删除数量；不带过滤条件时不删除任何记录"""
        _check_filters(filters)
        if not filters:
            return 0
        self._ensure_loaded()
        kept = [r for r in self._records if not self._matches(r, filters)]
        removed = len(self._records) - len(kept)
        if removed:
            self._save(kept, self._next_id)
            self._records = kept
        return removed

    @staticmethod
    def _matches(record: Subscription, filters: Dict[str, Any]) -> bool:
        return all(getattr(record, key) == value for key, value in filters.items())

    def _ensure_loaded(self):
        if self._loaded:
            return
        if self.json_file and os.path.exists(self.json_file):
            try:
                with open(self.json_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                records = [Subscription.model_validate(r) for r in data.get("records", [])]
                next_id = int(data.get("next_id", 1))
            except (OSError, ValueError, AttributeError, TypeError) as e:
                logger.error("SubscriptionStore", f"读取订阅文件失败: {e}")
                raise StoreError(f"无法读取订阅文件 {self.json_file}: {e}") from e
            self._records = records
            self._next_id = max([next_id, *(r.id + 1 for r in records)])
        self._loaded = True

    def _save(self, records: List[Subscription], next_id: int):
        if not self.json_file:
            return
        data = {
            "next_id": next_id,
            "records": [r.model_dump(mode="json") for r in records],
        }
        tmp_file = f"{self.json_file}.tmp"
        try:
            directory = os.path.dirname(self.json_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_file, self.json_file)
        except OSError as e:
            logger.error("SubscriptionStore", f"保存订阅文件失败: {e}")
            raise StoreError(f"无法写入订阅文件 {self.json_file}: {e}") from e
