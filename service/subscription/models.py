from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from service.bangumi.models import CalendarItem

TIME_UNKNOWN = "时间未知"


class Subscription(BaseModel):
    """订阅记录，schedule 字段是订阅时的快照，不跟随上游变化"""
    model_config = ConfigDict(frozen=True)

    id: int
    bangumi_id: str
    channel_id: str
    title: str
    title_localized: str = ""
    weekday: int = 0
    air_time: str = TIME_UNKNOWN  # "HH:MM" 或 TIME_UNKNOWN
    subscribed_at: datetime = Field(default_factory=datetime.now)

    @property
    def display_title(self) -> str:
        return self.title_localized or self.title

    @property
    def url(self) -> str:
        return f"https://bgm.tv/subject/{self.bangumi_id}"


class SubscribeStatus(str, Enum):
    INVALID_ID = "invalid_id"
    NOT_FOUND = "not_found"
    ALREADY = "already"
    SUCCESS = "success"


class SubscribeResult(BaseModel):
    status: SubscribeStatus
    item: Optional[CalendarItem] = None
    subscription: Optional[Subscription] = None


class DeleteStatus(str, Enum):
    EMPTY = "empty"
    INVALID_INDEX = "invalid_index"
    SUCCESS = "success"


class DeleteResult(BaseModel):
    status: DeleteStatus
    total: int = 0
    removed: Optional[Subscription] = None


class PushTestResult(BaseModel):
    success: int = 0
    total: int = 0
    failed: List[int] = Field(default_factory=list)  # 推送失败的订阅 id
