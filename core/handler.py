import asyncio
import os
from typing import List, Optional

from adapter.napcat.http_api import NapCatApiError, NapCatHttpClient
from core.pusher.subscription_scheduler import SubscriptionScheduler
from infra.config.messages import MessageTemplates, format_template
from infra.logger import logger
from service.bangumi.date_utils import now_in
from service.bangumi.models import CalendarItem, Subject
from service.bangumi.service import BangumiService
from service.subscription.models import DeleteStatus, SubscribeStatus
from service.subscription.service import SubscriptionService
from service.subscription.store import StoreError

LINK_SUMMARY_LIMIT = 200
LISTING_SUMMARY_LIMIT = 100
DETAIL_LOOKUP_SPACING = 0.5


def truncate(text: str, limit: int) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class Handler:
    def __init__(
        self,
        client: NapCatHttpClient,
        bangumi: BangumiService,
        subscriptions: SubscriptionService,
        scheduler: SubscriptionScheduler,
        messages: Optional[MessageTemplates] = None,
        details_for_today: bool = False,
        enable_screenshot: bool = False,
        timezone: str = "Asia/Shanghai",
    ):
        self.client = client
        self.bangumi_svc = bangumi
        self.subscription_svc = subscriptions
        self.scheduler = scheduler
        self.messages = messages or MessageTemplates()
        self.details_for_today = details_for_today
        self.enable_screenshot = enable_screenshot
        self.timezone = timezone

    async def _reply(self, group_id, text: str):
        try:
            await self.client.send_group_msg(group_id, text)
        except NapCatApiError as e:
            logger.error("Handler", f"回复群 {group_id} 失败: {e}")

    async def bangumi_handler(self, group_id, msg: str):
        """统一处理新番相关命令"""
        parts = msg.strip().split()
        if not parts:
            await self._reply(group_id, self.messages.help.usage)
            return

        command, args = parts[0], parts[1:]
        arg = args[0] if args else ""
        channel_id = str(group_id)

        if command == "今日新番":
            await self._handle_today(group_id)
        elif command == "本周新番":
            await self._handle_week(group_id)
        elif command == "查看新番":
            await self._handle_day(group_id, arg)
        elif command == "订阅":
            await self._handle_subscribe(group_id, channel_id, arg)
        elif command == "查看订阅":
            await self._handle_list(group_id, channel_id)
        elif command == "删除订阅":
            await self._handle_delete(group_id, channel_id, arg)
        elif command == "清空订阅":
            await self._handle_clear(group_id, channel_id)
        elif command == "订阅推送测试":
            await self._handle_push_test(group_id, channel_id)
        else:
            logger.warn("Handler", f"新番指令输入不合法: {msg}")
            await self._reply(group_id, self.messages.help.usage)

    def _format_item_line(self, item: CalendarItem) -> str:
        return format_template(self.messages.list_item.line, {
            "time": item.time or self.messages.detail.time_unknown,
            "title": item.display_title,
            "id": item.id,
        })

    def format_details(self, subject: Subject, item: Optional[CalendarItem] = None,
                       summary_limit: int = LINK_SUMMARY_LIMIT) -> str:
        detail = self.messages.detail
        lines = [format_template(detail.title, {"title": subject.name or detail.unknown})]
        if subject.name_cn:
            lines.append(format_template(detail.title_cn, {"title": subject.name_cn}))
        if item is not None:
            air = f"{self.messages.weekday_name(item.weekday)} {item.time or detail.time_unknown}"
            lines.append(format_template(detail.air_time, {"time": air}))
            if item.platforms:
                lines.append(format_template(detail.platform, {"platforms": "、".join(item.platforms)}))
        lines.append(format_template(detail.air_date, {"date": subject.date or detail.unknown}))
        if subject.score > 0:
            lines.append(format_template(detail.rating, {"rating": subject.score}))
        if subject.effective_rank > 0:
            lines.append(format_template(detail.rank, {"rank": subject.effective_rank}))
        if subject.summary:
            lines.append(format_template(detail.summary, {"summary": truncate(subject.summary, summary_limit)}))
        lines.append(format_template(detail.link, {"url": subject.url}))
        return "\n".join(lines)

    async def _detail_blocks(self, items: List[CalendarItem]) -> List[str]:
        blocks = []
        for i, item in enumerate(items):
            if i > 0:
                await asyncio.sleep(DETAIL_LOOKUP_SPACING)
            subject = await self.bangumi_svc.get_details(item.id)
            if subject is None:
                logger.warn("Handler", f"获取番剧 {item.id} 详情失败")
                continue
            blocks.append(self.format_details(subject, item, LISTING_SUMMARY_LIMIT))
        return blocks

    async def _send_listing(self, group_id, title: str, items: List[CalendarItem]):
        lines = [title, ""] + [self._format_item_line(item) for item in items]
        reply = "\n".join(lines)
        if self.details_for_today:
            blocks = await self._detail_blocks(items)
            if blocks:
                reply += "\n\n" + "\n\n".join(blocks)
        await self._reply(group_id, reply)

    async def _handle_today(self, group_id):
        """处理今日新番查询"""
        today = self.messages.today
        try:
            catalog = await self.bangumi_svc.get_catalog()
            if not catalog:
                await self._reply(group_id, today.fetch_error)
                return
            now = now_in(self.timezone)
            weekday = self.bangumi_svc.today_weekday(now)
            weekday_name = self.messages.weekday_name(weekday)
            items = await self.bangumi_svc.get_weekday_items(weekday)
            if not items:
                await self._reply(group_id, format_template(today.no_items, {"weekday": weekday_name}))
                return
            title = format_template(today.title, {"weekday": weekday_name, "date": now.strftime("%Y-%m-%d")})
            await self._send_listing(group_id, title, items)
        except Exception as e:
            logger.error("Handler", f"查询今日新番出错: {e}")
            await self._reply(group_id, today.error)

    async def _handle_day(self, group_id, arg: str):
        """处理指定星期的新番查询"""
        day = self.messages.day
        if not arg.isdecimal() or not 1 <= int(arg) <= 7:
            await self._reply(group_id, day.invalid_day)
            return
        weekday = int(arg)
        weekday_name = self.messages.weekday_name(weekday)
        try:
            catalog = await self.bangumi_svc.get_catalog()
            if not catalog:
                await self._reply(group_id, day.fetch_error)
                return
            items = await self.bangumi_svc.get_weekday_items(weekday)
            if not items:
                await self._reply(group_id, format_template(day.no_items, {"weekday": weekday_name}))
                return
            date = now_in(self.timezone).strftime("%Y-%m-%d")
            title = format_template(day.title, {"weekday": weekday_name, "date": date})
            await self._send_listing(group_id, title, items)
        except Exception as e:
            logger.error("Handler", f"查询{weekday_name}新番出错: {e}")
            await self._reply(group_id, day.error)

    async def _handle_week(self, group_id):
        """处理本周新番查询"""
        week = self.messages.week
        try:
            items = await self.bangumi_svc.get_week_items()
            if not items:
                await self._reply(group_id, week.fetch_error)
                return
            sections = [format_template(week.title, {"date": now_in(self.timezone).strftime("%Y-%m-%d")})]
            for weekday in range(1, 8):
                day_items = [item for item in items if item.weekday == weekday]
                lines = [self._format_item_line(item) for item in day_items] or [week.empty_day]
                sections.append(self.messages.weekday_name(weekday) + "\n" + "\n".join(lines))
            await self._reply(group_id, "\n\n".join(sections))
        except Exception as e:
            logger.error("Handler", f"查询本周新番出错: {e}")
            await self._reply(group_id, week.error)

    async def _handle_subscribe(self, group_id, channel_id: str, bangumi_id: str):
        """处理订阅番剧"""
        sub_msg = self.messages.subscribe
        try:
            result = await self.subscription_svc.subscribe(channel_id, bangumi_id)
        except StoreError as e:
            logger.error("Handler", f"订阅 {bangumi_id} 失败: {e}")
            await self._reply(group_id, sub_msg.error)
            return

        if result.status == SubscribeStatus.INVALID_ID:
            reply = sub_msg.invalid_id
        elif result.status == SubscribeStatus.NOT_FOUND:
            reply = format_template(sub_msg.not_found, {"id": bangumi_id})
        elif result.status == SubscribeStatus.ALREADY:
            reply = format_template(sub_msg.already, {"title": result.subscription.display_title})
        else:
            sub = result.subscription
            reply = format_template(sub_msg.success, {
                "title": sub.display_title,
                "weekday": self.messages.weekday_name(sub.weekday),
                "time": sub.air_time,
            })
        await self._reply(group_id, reply)

    async def _handle_list(self, group_id, channel_id: str):
        """处理查看订阅列表"""
        list_msg = self.messages.list
        try:
            subscriptions = self.subscription_svc.list_subscriptions(channel_id)
        except StoreError as e:
            logger.error("Handler", f"读取订阅列表失败: {e}")
            await self._reply(group_id, list_msg.error)
            return

        if not subscriptions:
            await self._reply(group_id, list_msg.empty)
            return

        lines = [
            format_template(list_msg.item, {
                "index": i,
                "title": sub.display_title,
                "weekday": self.messages.weekday_name(sub.weekday),
                "time": sub.air_time,
                "id": sub.bangumi_id,
            })
            for i, sub in enumerate(subscriptions, start=1)
        ]
        await self._reply(group_id, format_template(list_msg.header, {
            "list": "\n\n".join(lines),
            "count": len(subscriptions),
        }))

    async def _handle_delete(self, group_id, channel_id: str, arg: str):
        """处理按序号删除订阅"""
        delete = self.messages.delete
        index = int(arg) if arg.isdecimal() else 0
        try:
            result = self.subscription_svc.delete_by_index(channel_id, index)
        except StoreError as e:
            logger.error("Handler", f"删除订阅失败: {e}")
            await self._reply(group_id, delete.error)
            return

        if result.status == DeleteStatus.EMPTY:
            reply = delete.empty
        elif result.status == DeleteStatus.INVALID_INDEX:
            reply = format_template(delete.invalid_index, {"max": result.total})
        else:
            reply = format_template(delete.success, {"title": result.removed.display_title})
        await self._reply(group_id, reply)

    async def _handle_clear(self, group_id, channel_id: str):
        """处理清空订阅"""
        try:
            self.subscription_svc.clear(channel_id)
        except StoreError as e:
            logger.error("Handler", f"清空订阅失败: {e}")
            await self._reply(group_id, self.messages.clear.error)
            return
        await self._reply(group_id, self.messages.clear.success)

    async def _handle_push_test(self, group_id, channel_id: str):
        """处理订阅推送测试"""
        test = self.messages.test
        try:
            if not self.subscription_svc.list_subscriptions(channel_id):
                await self._reply(group_id, test.empty)
                return
            await self._reply(group_id, test.start)
            result = await self.scheduler.send_test_push(channel_id)
        except StoreError as e:
            logger.error("Handler", f"推送测试失败: {e}")
            await self._reply(group_id, test.error)
            return
        await self._reply(group_id, format_template(test.result, {"success": result.success, "total": result.total}))

    async def link_handler(self, group_id, url: str):
        """处理 bangumi 条目链接，回复详情和可选的网页截图"""
        link = self.messages.link
        try:
            preview = await self.bangumi_svc.parse_link(url, with_screenshot=self.enable_screenshot)
        except Exception as e:
            logger.error("Handler", f"解析链接 {url} 出错: {e}")
            await self._reply(group_id, link.error)
            return

        if preview is None:
            await self._reply(group_id, link.parse_fail)
            return

        reply = self.format_details(preview.subject)
        if preview.subject.cover_url:
            reply = f"[CQ:image,file={preview.subject.cover_url}]\n" + reply
        await self._reply(group_id, reply)

        if preview.screenshot_path:
            image = f"[CQ:image,file=file://{os.path.abspath(preview.screenshot_path)}]"
            await self._reply(group_id, f"{link.screenshot_label}\n{image}")
