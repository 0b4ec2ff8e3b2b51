"""Shared test fixtures and fakes."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import pytest

from core.pusher.delivery import AgentStatus, Delivery
from infra.config.messages import MessageTemplates
from service.bangumi.cache import CalendarCache
from service.bangumi.models import Subject
from service.bangumi.service import BangumiService
from service.subscription.service import SubscriptionService
from service.subscription.store import JsonSubscriptionStore

TZ = ZoneInfo("Asia/Shanghai")


def make_entry(
    subject_id: str = "12345",
    title: str = "Test Anime",
    broadcast: str = "R/2024-07-06T23:30:00/P7D",
    zh_hans: Optional[str] = "测试番剧",
    sites: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """bgmlist 格式的原始条目"""
    if sites is None:
        sites = [
            {"site": "bangumi", "id": subject_id},
            {"site": "bilibili", "id": "ss1"},
        ]
    entry: Dict[str, Any] = {"title": title, "broadcast": broadcast, "sites": sites}
    if zh_hans is not None:
        entry["titleTranslate"] = {"zh-Hans": [zh_hans]}
    return entry


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeCalendarSource:
    """按 source_key 返回预设数据，记录每次请求"""

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: List[str] = []
        self.closed = False

    async def fetch(self, source_key: str) -> Optional[Any]:
        self.calls.append(source_key)
        response = self.responses.get(source_key)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


class FakeBangumiClient:
    def __init__(self, subjects: Optional[Dict[str, Subject]] = None):
        self.subjects = subjects or {}
        self.calls: List[str] = []
        self.closed = False

    async def get_subject(self, subject_id: str) -> Optional[Subject]:
        self.calls.append(str(subject_id))
        return self.subjects.get(str(subject_id))

    async def close(self):
        self.closed = True


class FakeAgent:
    def __init__(self, name: str = "fake", status: AgentStatus = AgentStatus.ONLINE, fail: bool = False):
        self.name = name
        self.status = status
        self.fail = fail
        self.sent: List[tuple] = []

    async def get_status(self) -> AgentStatus:
        if isinstance(self.status, Exception):
            raise self.status
        return self.status

    async def send_message(self, channel_id: str, text: str) -> None:
        if self.fail:
            raise RuntimeError("send failed")
        self.sent.append((channel_id, text))


class FakeNapCatClient:
    """Handler 使用的回复通道"""

    def __init__(self):
        self.sent: List[tuple] = []

    async def send_group_msg(self, group_id, message: str):
        self.sent.append((group_id, message))
        return len(self.sent)


@pytest.fixture
def now() -> datetime:
    # 2024-07-06 是周六
    return datetime(2024, 7, 6, 12, 0, tzinfo=TZ)


@pytest.fixture
def clock(now: datetime) -> FakeClock:
    return FakeClock(now)


@pytest.fixture
def source() -> FakeCalendarSource:
    return FakeCalendarSource({"onair": [make_entry()]})


@pytest.fixture
def cache(source: FakeCalendarSource, clock: FakeClock) -> CalendarCache:
    return CalendarCache(source, timezone="Asia/Shanghai", clock=clock)


@pytest.fixture
def bangumi_client() -> FakeBangumiClient:
    return FakeBangumiClient({
        "12345": Subject(id=12345, name="Test Anime", name_cn="测试番剧", summary="简介" * 150, date="2024-07-06"),
    })


@pytest.fixture
def bangumi_service(cache: CalendarCache, bangumi_client: FakeBangumiClient) -> BangumiService:
    return BangumiService(cache, bangumi_client, timezone="Asia/Shanghai")


@pytest.fixture
def store() -> JsonSubscriptionStore:
    return JsonSubscriptionStore(json_file=None)


@pytest.fixture
def subscription_service(store: JsonSubscriptionStore, bangumi_service: BangumiService) -> SubscriptionService:
    return SubscriptionService(store, bangumi_service)


@pytest.fixture
def agent() -> FakeAgent:
    return FakeAgent()


@pytest.fixture
def delivery(agent: FakeAgent) -> Delivery:
    return Delivery([agent])


@pytest.fixture
def messages() -> MessageTemplates:
    return MessageTemplates()
