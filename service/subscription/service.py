from datetime import datetime
from typing import List

from infra.logger import logger
from service.bangumi.service import BangumiService
from .models import (
    TIME_UNKNOWN,
    DeleteResult,
    DeleteStatus,
    SubscribeResult,
    SubscribeStatus,
    Subscription,
)
from .store import SubscriptionStore


class SubscriptionService:
    """订阅的增删查，存储异常（StoreError）直接抛给调用方"""

    def __init__(self, store: SubscriptionStore, bangumi: BangumiService):
        self.store = store
        self.bangumi = bangumi

    async def subscribe(self, channel_id: str, bangumi_id: str) -> SubscribeResult:
        bangumi_id = (bangumi_id or "").strip()
        if not bangumi_id.isdecimal():
            return SubscribeResult(status=SubscribeStatus.INVALID_ID)

        item = await self.bangumi.find_item(bangumi_id)
        if item is None:
            return SubscribeResult(status=SubscribeStatus.NOT_FOUND)

        existing = self.store.get(bangumi_id=bangumi_id, channel_id=channel_id)
        if existing:
            return SubscribeResult(status=SubscribeStatus.ALREADY, item=item, subscription=existing[0])

        subscription = self.store.create(
            bangumi_id=bangumi_id,
            channel_id=channel_id,
            title=item.title,
            title_localized=item.title_localized,
            weekday=item.weekday,
            air_time=item.time or TIME_UNKNOWN,
            subscribed_at=datetime.now(),
        )
        logger.info("Subscription", f"频道 {channel_id} 订阅了 {item.display_title} ({bangumi_id})")
        return SubscribeResult(status=SubscribeStatus.SUCCESS, item=item, subscription=subscription)

    def list_subscriptions(self, channel_id: str) -> List[Subscription]:
        return self.store.get(channel_id=channel_id)

    def delete_by_index(self, channel_id: str, index: int) -> DeleteResult:
        """按列表序号（从 1 开始）删除一条订阅"""
        subscriptions = self.store.get(channel_id=channel_id)
        if not subscriptions:
            return DeleteResult(status=DeleteStatus.EMPTY)

        if index < 1 or index > len(subscriptions):
            return DeleteResult(status=DeleteStatus.INVALID_INDEX, total=len(subscriptions))

        target = subscriptions[index - 1]
        self.store.remove(id=target.id)
        logger.info("Subscription", f"频道 {channel_id} 删除了订阅 {target.display_title} ({target.bangumi_id})")
        return DeleteResult(status=DeleteStatus.SUCCESS, total=len(subscriptions), removed=target)

    def clear(self, channel_id: str) -> int:
        removed = self.store.remove(channel_id=channel_id)
        logger.info("Subscription", f"频道 {channel_id} 清空了 {removed} 条订阅")
        return removed
