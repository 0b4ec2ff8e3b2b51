from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict


class AirTime(BaseModel):
    """放送时间，weekday 为 1-7（周一为 1），0 表示未知"""
    model_config = ConfigDict(frozen=True)

    weekday: int = 0
    time: str = ""  # "HH:MM"，未知时为空
    date: str = ""  # "YYYY-MM-DD"，未知时为空


class CalendarItem(BaseModel):
    """当季新番条目，由一次目录刷新整体生成，不会被原地修改"""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    title_localized: str = ""
    weekday: int = 0
    air_time: Optional[AirTime] = None
    platforms: Tuple[str, ...] = ()

    @property
    def display_title(self) -> str:
        return self.title_localized or self.title

    @property
    def time(self) -> str:
        return self.air_time.time if self.air_time else ""

    @property
    def url(self) -> str:
        return f"https://bgm.tv/subject/{self.id}"


# bgmlist.com 原始条目，只声明用到的字段，格式参考 https://github.com/bangumi-data/bangumi-data
class BgmListSite(BaseModel):
    site: Optional[str] = None
    url: Optional[str] = None
    id: Optional[Union[str, int]] = None


class BgmListEntry(BaseModel):
    title: Optional[str] = None
    titleTranslate: Optional[Dict[str, List[str]]] = None
    broadcast: Optional[str] = None
    sites: Optional[List[BgmListSite]] = None


# api.bgm.tv /v0/subjects/{id}
class SubjectImage(BaseModel):
    large: str = ""
    common: str = ""
    medium: str = ""
    small: str = ""
    grid: str = ""


class SubjectRating(BaseModel):
    rank: int = 0
    total: int = 0
    score: float = 0.0


class Subject(BaseModel):
    id: int
    name: str = ""
    name_cn: str = ""
    summary: str = ""
    date: Optional[str] = None
    images: Optional[SubjectImage] = None
    rating: Optional[SubjectRating] = None
    rank: int = 0

    @property
    def title_localized(self) -> str:
        return self.name_cn or self.name

    @property
    def cover_url(self) -> str:
        return self.images.large if self.images else ""

    @property
    def score(self) -> float:
        return self.rating.score if self.rating else 0.0

    @property
    def effective_rank(self) -> int:
        if self.rating and self.rating.rank:
            return self.rating.rank
        return self.rank

    @property
    def url(self) -> str:
        return f"https://bgm.tv/subject/{self.id}"


class LinkPreview(BaseModel):
    subject: Subject
    screenshot_path: str = ""
