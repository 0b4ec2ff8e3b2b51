import asyncio
import re
from datetime import date, datetime, time, timedelta
from typing import Awaitable, Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import BaseModel

from core.pusher.delivery import Delivery
from infra.config.messages import MessageTemplates, format_template
from infra.logger import logger
from service.bangumi.date_utils import now_in, to_weekday
from service.subscription.models import PushTestResult, Subscription
from service.subscription.store import StoreError, SubscriptionStore

AIR_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")
JOB_ID = "push_bangumi_subscriptions"


class TickResult(BaseModel):
    window_start: datetime
    window_end: datetime
    checked: int = 0
    due: int = 0
    delivered: int = 0
    failed: int = 0
    skipped: bool = False
    error: Optional[str] = None


def air_instant(sub: Subscription, day: date, tzinfo=None) -> Optional[datetime]:
    """订阅在某天的播出时刻，air_time 不是 HH:MM 时返回 None（时间未知，永不到期）"""
    match = AIR_TIME_RE.match(sub.air_time or "")
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return datetime.combine(day, time(hour, minute), tzinfo=tzinfo)


def days_in_window(start: datetime, end: datetime) -> List[date]:
    days = []
    day = start.date()
    while day <= end.date():
        days.append(day)
        day += timedelta(days=1)
    return days


class SubscriptionScheduler:
    """
    订阅推送定时器

    每隔 interval 分钟检查一次，窗口为 (now - interval, now]，
    播出时刻落在窗口内的订阅推送一次；推送失败只计数，不在本轮重试。
    上一轮还没跑完时跳过新的一轮，stop() 之后不会再执行任何一轮。
    定时触发时 now 取计划触发时刻（start 时刻加整数个周期），而不是实际执行时刻。
    """

    def __init__(
        self,
        store: SubscriptionStore,
        delivery: Delivery,
        messages: Optional[MessageTemplates] = None,
        interval_minutes: int = 60,
        timezone: str = "Asia/Shanghai",
        push_spacing: float = 1.0,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.delivery = delivery
        self.messages = messages or MessageTemplates()
        self.interval = timedelta(minutes=interval_minutes)
        self.timezone = timezone
        self.push_spacing = push_spacing
        self._clock = clock or (lambda: now_in(self.timezone))
        self._sleep = sleep
        self._stopped = False
        self._anchor: Optional[datetime] = None
        self.scheduler = AsyncIOScheduler(timezone=timezone)

    def start(self):
        """启动调度器"""
        self._anchor = self._clock()
        self.scheduler.add_job(
            self._tick,
            trigger="interval",
            seconds=int(self.interval.total_seconds()),
            id=JOB_ID,
            next_run_time=self._anchor + self.interval,
            max_instances=1,  # 上一轮未结束时跳过
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("SubscriptionScheduler", f"订阅推送已启动，检查间隔 {self.interval}")

    def stop(self):
        """停止调度器，可重复调用"""
        if self._stopped:
            return
        self._stopped = True
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("SubscriptionScheduler", "订阅推送定时器已清理")

    @property
    def stopped(self) -> bool:
        return self._stopped

    def scheduled_now(self) -> datetime:
        """最近一次计划触发的时刻，窗口以它为右端，执行延迟不会让相邻窗口出现空隙或重叠"""
        now = self._clock()
        if self._anchor is None or now < self._anchor:
            return now
        periods = (now - self._anchor) // self.interval
        return self._anchor + periods * self.interval

    async def _tick(self):
        await self.check_and_push(self.scheduled_now())

    async def check_and_push(self, now: Optional[datetime] = None) -> TickResult:
        now = now or self._clock()
        last_check = now - self.interval
        result = TickResult(window_start=last_check, window_end=now)

        if self._stopped:
            result.skipped = True
            return result

        logger.debug(
            "SubscriptionScheduler",
            f"检查时间范围: ({last_check.strftime('%m-%d %H:%M:%S')}, {now.strftime('%m-%d %H:%M:%S')}]",
        )

        due: List[Subscription] = []
        # 窗口跨过零点时前一天的订阅也要检查
        for day in days_in_window(last_check, now):
            weekday = to_weekday(day)
            try:
                candidates = self.store.get(weekday=weekday)
            except StoreError as e:
                logger.error("SubscriptionScheduler", f"读取订阅失败，本轮结束: {e}")
                result.error = str(e)
                return result

            result.checked += len(candidates)
            for sub in candidates:
                instant = air_instant(sub, day, now.tzinfo)
                if instant is None:
                    continue
                if last_check < instant <= now:
                    due.append(sub)

        result.due = len(due)
        if not due:
            logger.debug("SubscriptionScheduler", f"本轮没有需要推送的订阅 (检查了 {result.checked} 条)")
            return result

        for i, sub in enumerate(due):
            if self._stopped:
                break
            if i > 0 and self.push_spacing > 0:
                await self._sleep(self.push_spacing)
            if await self.send_push_notification(sub):
                result.delivered += 1
            else:
                result.failed += 1

        logger.info(
            "SubscriptionScheduler",
            f"检查完成，到期 {result.due} 条，推送成功 {result.delivered} 条，失败 {result.failed} 条",
        )
        return result

    def build_push_message(self, sub: Subscription, is_test: bool = False) -> str:
        push = self.messages.push
        return format_template(push.message, {
            "title": push.test_title if is_test else push.title,
            "name": sub.display_title,
            "weekday": self.messages.weekday_name(sub.weekday),
            "time": sub.air_time,
            "url": sub.url,
        })

    async def send_push_notification(self, sub: Subscription, is_test: bool = False) -> bool:
        ok = await self.delivery.deliver(sub.channel_id, self.build_push_message(sub, is_test))
        if ok:
            logger.debug("SubscriptionScheduler", f"已推送: {sub.display_title} 到 {sub.channel_id}")
        else:
            logger.warn("SubscriptionScheduler", f"推送失败: {sub.display_title} ({sub.bangumi_id}) 到 {sub.channel_id}")
        return ok

    async def send_test_push(self, channel_id: str) -> PushTestResult:
        """立即把频道的全部订阅作为测试推送一遍，两条之间间隔 push_spacing 秒"""
        subscriptions = self.store.get(channel_id=channel_id)
        result = PushTestResult(total=len(subscriptions))
        for i, sub in enumerate(subscriptions):
            if i > 0 and self.push_spacing > 0:
                await self._sleep(self.push_spacing)
            if await self.send_push_notification(sub, is_test=True):
                result.success += 1
            else:
                result.failed.append(sub.id)
        return result
