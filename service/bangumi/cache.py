import asyncio
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from infra.logger import logger
from .date_utils import is_current_season, now_in, parse_air_time, season_key
from .models import BgmListEntry, BgmListSite, CalendarItem

CACHE_DURATION = timedelta(hours=1)
SITE_TAG = "bangumi"
UNKNOWN_PLATFORM = "未知平台"
SUBJECT_URL_RE = re.compile(r"subject/(\d+)")


class CalendarSource(Protocol):
    def fetch(self, source_key: str) -> Awaitable[Optional[Any]]: ...


@dataclass(frozen=True)
class CatalogGeneration:
    """一次完整刷新的结果，整体替换，读者只会看到完整的某一代"""
    items: Tuple[CalendarItem, ...] = ()
    fetched_at: Optional[datetime] = None
    number: int = 0


def normalize_entries(raw: Any) -> Optional[List[Any]]:
    """接受裸数组或 {items: [...]}，其他结构视为获取失败"""
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict) and isinstance(raw.get("items"), list):
        return raw["items"]
    return None


def extract_subject_id(site: BgmListSite) -> str:
    if site.url:
        match = SUBJECT_URL_RE.search(site.url)
        if match:
            return match.group(1)
    if site.id is not None and str(site.id).strip():
        return str(site.id).strip()
    return ""


def build_item(entry: Any, now: datetime, tz: Optional[str] = None) -> Optional[CalendarItem]:
    """把一条原始数据转换为 CalendarItem，没有 ID、没有日期或不属于本季的返回 None"""
    parsed = BgmListEntry.model_validate(entry)
    sites = parsed.sites or []

    bangumi_site = next((s for s in sites if s.site == SITE_TAG), None)
    if bangumi_site is None:
        return None
    subject_id = extract_subject_id(bangumi_site)
    if not subject_id:
        return None

    air_time = parse_air_time(parsed.broadcast or "", tz=tz)
    if air_time is None or not is_current_season(air_time.date, now):
        logger.debug("CalendarCache", f"跳过 {parsed.title}: 非本季新番 (date: {air_time.date if air_time else 'unknown'})")
        return None

    platforms = [s.site or UNKNOWN_PLATFORM for s in sites if s.site != SITE_TAG]
    translations = parsed.titleTranslate or {}
    title_localized = next(
        (names[0] for names in (translations.get("zh-Hans"), translations.get("zh-Hant")) if names),
        "",
    )

    return CalendarItem(
        id=subject_id,
        title=parsed.title or "",
        title_localized=title_localized,
        weekday=air_time.weekday,
        air_time=air_time,
        platforms=tuple(dict.fromkeys(platforms)),  # 去重并保持顺序
    )


def build_catalog(entries: List[Any], now: datetime, tz: Optional[str] = None) -> List[CalendarItem]:
    items: List[CalendarItem] = []
    seen = set()
    for entry in entries:
        try:
            item = build_item(entry, now, tz)
        except ValidationError as e:
            logger.debug("CalendarCache", f"跳过格式不正确的条目: {e}")
            continue
        if item is None or item.id in seen:
            continue
        seen.add(item.id)
        items.append(item)
    return items


class CalendarCache:
    """
    当季番剧目录缓存

    只有一个写者（刷新任务），任意多个读者；一小时内且目录非空时直接返回缓存，
    否则刷新。并发的刷新请求共享同一个进行中的任务，不会重复请求上游。
    """

    def __init__(
        self,
        source: CalendarSource,
        timezone: str = "Asia/Shanghai",
        ttl: timedelta = CACHE_DURATION,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.source = source
        self.timezone = timezone
        self.ttl = ttl
        self._clock = clock or (lambda: now_in(self.timezone))
        self._generation = CatalogGeneration()
        self._inflight: Optional[asyncio.Task] = None

    @property
    def generation(self) -> CatalogGeneration:
        return self._generation

    @property
    def last_fetch_time(self) -> Optional[datetime]:
        return self._generation.fetched_at

    def is_fresh(self) -> bool:
        gen = self._generation
        if not gen.items or gen.fetched_at is None:
            return False
        return self._clock() - gen.fetched_at < self.ttl

    async def get_catalog(self) -> List[CalendarItem]:
        """返回当前目录，永不抛出；刷新失败时返回上一代目录或空列表"""
        if self.is_fresh():
            logger.debug("CalendarCache", "使用缓存的番剧数据")
            return list(self._generation.items)

        task = self._inflight
        if task is None:
            task = asyncio.create_task(self._refresh())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        else:
            logger.debug("CalendarCache", "已有刷新任务进行中，等待其完成")

        await asyncio.shield(task)
        return list(self._generation.items)

    def _clear_inflight(self, task: asyncio.Task):
        if self._inflight is task:
            self._inflight = None

    async def _refresh(self):
        now = self._clock()
        try:
            entries, source_key = await self._fetch_entries(now)
            if entries is None:
                logger.warn("CalendarCache", "所有数据源均获取失败，保留上一版本目录")
                return
            items = build_catalog(entries, now, self.timezone)
        except Exception as e:
            logger.error("CalendarCache", f"刷新番剧数据失败，保留上一版本目录: {e}")
            return

        previous = self._generation
        self._generation = CatalogGeneration(
            items=tuple(items),
            fetched_at=now,
            number=previous.number + 1,
        )
        logger.info("CalendarCache", f"已从 {source_key} 缓存 {len(items)} 部番剧 (第 {previous.number + 1} 代)")
        if logger.is_debug():
            logger.debug("CalendarCache", f"每周分布: {self._weekly_distribution(items)}")

    async def _fetch_entries(self, now: datetime) -> Tuple[Optional[List[Any]], str]:
        """先请求 onair，失败或格式不对时退回当季归档"""
        for source_key in ("onair", f"archive/{season_key(now)}"):
            logger.debug("CalendarCache", f"从 bgmlist.com 获取 {source_key}")
            try:
                raw = await self.source.fetch(source_key)
            except Exception as e:
                logger.warn("CalendarCache", f"{source_key} 获取失败: {e}")
                continue
            entries = normalize_entries(raw)
            if entries is not None:
                logger.debug("CalendarCache", f"{source_key} 返回 {len(entries)} 条数据")
                return entries, source_key
            if raw is not None:
                logger.warn("CalendarCache", f"{source_key} 返回了无法识别的数据格式: {type(raw).__name__}")
        return None, ""

    @staticmethod
    def _weekly_distribution(items: List[CalendarItem]) -> str:
        names = ["周一", "周二", "周三", "周四", "周五", "周六", "周日"]
        counts = [0] * 7
        for item in items:
            if 1 <= item.weekday <= 7:
                counts[item.weekday - 1] += 1
        return " ".join(f"{name}:{count}" for name, count in zip(names, counts))
