import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from .models import AirTime

# "R/2024-07-07T15:30:00/P7D"，可能带 Z 或时区偏移
ISO_BROADCAST_RE = re.compile(
    r"(\d{4}-\d{2}-\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.\d+)?(Z|[+-]\d{2}:?\d{2})?"
)
# "周六 23:30"
LOCAL_BROADCAST_RE = re.compile(r"(周\S)\s*(\d{1,2}):(\d{2})")

WEEKDAY_NAMES = {
    "周一": 1,
    "周二": 2,
    "周三": 3,
    "周四": 4,
    "周五": 5,
    "周六": 6,
    "周日": 7,
}


def to_weekday(d: date) -> int:
    """统一的星期换算：周一为 1，周日为 7"""
    return d.isoweekday()


def now_in(tz_name: str) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


def quarter_of(month: int) -> int:
    return (month - 1) // 3 + 1


def season_start_month(month: int) -> int:
    return (quarter_of(month) - 1) * 3 + 1


def season_key(now: datetime) -> str:
    """bgmlist 归档的季度键，例如 2024q3"""
    return f"{now.year}q{quarter_of(now.month)}"


def parse_air_time(broadcast: str, tz: Optional[str] = None) -> Optional[AirTime]:
    """
    解析放送时间字符串，无法识别时返回 None
    带有 Z 或时区偏移的 ISO 时间在传入 tz 时换算到该时区（日期和时间都是换算后的本地值，
    不再是原文中的字面日期），否则按字面值处理
    """
    if not broadcast:
        return None

    iso_match = ISO_BROADCAST_RE.search(broadcast)
    if iso_match:
        parsed = _parse_iso(iso_match, tz)
        if parsed:
            return parsed

    local_match = LOCAL_BROADCAST_RE.search(broadcast)
    if local_match:
        hour, minute = int(local_match.group(2)), int(local_match.group(3))
        if hour > 23 or minute > 59:
            return None
        return AirTime(
            weekday=WEEKDAY_NAMES.get(local_match.group(1), 0),
            time=f"{hour:02d}:{minute:02d}",
            date="",
        )

    return None


def _parse_iso(match: re.Match, tz: Optional[str]) -> Optional[AirTime]:
    date_str, hh, mm, ss, offset = match.groups()
    try:
        dt = datetime.fromisoformat(f"{date_str}T{hh}:{mm}:{ss}")
    except ValueError:
        return None

    if offset and tz:
        offset = "+00:00" if offset == "Z" else offset
        if ":" not in offset:
            offset = f"{offset[:3]}:{offset[3:]}"
        try:
            dt = datetime.fromisoformat(f"{date_str}T{hh}:{mm}:{ss}{offset}").astimezone(ZoneInfo(tz))
        except ValueError:
            return None
        date_str = dt.date().isoformat()

    return AirTime(
        weekday=to_weekday(dt.date()),
        time=dt.strftime("%H:%M"),
        date=date_str,
    )


def is_current_season(air_date: str, now: Optional[datetime] = None) -> bool:
    """同年且首播月份不早于当前季度首月即视为本季新番"""
    if not air_date:
        return False
    try:
        parsed = datetime.strptime(air_date, "%Y-%m-%d").date()
    except ValueError:
        return False

    now = now or datetime.now()
    return parsed.year == now.year and parsed.month >= season_start_month(now.month)
