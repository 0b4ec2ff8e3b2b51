import re
from datetime import datetime
from typing import List, Optional

from infra.logger import logger
from .cache import CalendarCache
from .client import BangumiClient
from .date_utils import now_in, to_weekday
from .models import CalendarItem, LinkPreview, Subject
from .screenshot import BangumiScreenshot

SUBJECT_LINK_RE = re.compile(r"https?://(?:bangumi\.tv|bgm\.tv)/subject/(\d+)")


def sort_by_air_time(items: List[CalendarItem]) -> List[CalendarItem]:
    # 没有解析到时间的排在最后
    return sorted(items, key=lambda item: item.time or "99:99")


class BangumiService:
    def __init__(
        self,
        cache: CalendarCache,
        client: BangumiClient,
        screenshot: Optional[BangumiScreenshot] = None,
        timezone: str = "Asia/Shanghai",
    ):
        self.cache = cache
        self.client = client
        self.screenshot = screenshot
        self.timezone = timezone

    async def get_catalog(self) -> List[CalendarItem]:
        return await self.cache.get_catalog()

    def today_weekday(self, now: Optional[datetime] = None) -> int:
        return to_weekday((now or now_in(self.timezone)).date())

    async def get_today_items(self, now: Optional[datetime] = None) -> List[CalendarItem]:
        """获取今日放送的番剧"""
        return await self.get_weekday_items(self.today_weekday(now))

    async def get_weekday_items(self, weekday: int) -> List[CalendarItem]:
        """获取指定星期的番剧，按放送时间排序"""
        catalog = await self.cache.get_catalog()
        return sort_by_air_time([item for item in catalog if item.weekday == weekday])

    async def get_week_items(self) -> List[CalendarItem]:
        catalog = await self.cache.get_catalog()
        return sorted(catalog, key=lambda item: (item.weekday, item.time or "99:99"))

    async def find_item(self, bangumi_id: str) -> Optional[CalendarItem]:
        catalog = await self.cache.get_catalog()
        return next((item for item in catalog if item.id == bangumi_id), None)

    async def get_details(self, bangumi_id: str) -> Optional[Subject]:
        return await self.client.get_subject(bangumi_id)

    @staticmethod
    def extract_subject_link(text: str) -> Optional[str]:
        match = SUBJECT_LINK_RE.search(text)
        return match.group(0) if match else None

    async def parse_link(self, url: str, with_screenshot: bool = False) -> Optional[LinkPreview]:
        """解析 bangumi 链接，返回条目详情和可选的网页截图"""
        match = SUBJECT_LINK_RE.search(url)
        if not match:
            return None

        subject = await self.get_details(match.group(1))
        if subject is None:
            return None

        screenshot_path = ""
        if with_screenshot and self.screenshot is not None:
            screenshot_path = await self.screenshot.capture_subject_page(url, match.group(1))
            if screenshot_path:
                self.screenshot.cleanup_old_screenshots()
            else:
                logger.warn("BangumiService", f"网页截图失败: {url}")

        return LinkPreview(subject=subject, screenshot_path=screenshot_path)

    async def close(self):
        await self.client.close()
        source_close = getattr(self.cache.source, "close", None)
        if source_close is not None:
            await source_close()
