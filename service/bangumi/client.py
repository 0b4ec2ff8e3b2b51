from typing import Any, Optional

import httpx

from infra.logger import logger
from .models import Subject

USER_AGENT = "KiBot-Bangumi/1.0 (https://github.com/Limpid-8818/KiBot.git)"


class BgmListClient:
    """bgmlist.com 放送数据，source_key 为 "onair" 或 "archive/{year}q{quarter}" """

    def __init__(self, base_url: str = "https://bgmlist.com/api/v1/bangumi"):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=httpx.Timeout(10, connect=5),
            follow_redirects=True,
        )

    async def fetch(self, source_key: str) -> Optional[Any]:
        """获取原始 JSON，失败时返回 None"""
        url = f"{self.base_url}/{source_key}"
        try:
            response = await self.client.get(url)
        except httpx.TimeoutException:
            logger.warn("BgmList", f"获取 {source_key} 超时")
            return None
        except httpx.HTTPError as e:
            logger.warn("BgmList", f"请求 {source_key} 时出错: {e}")
            return None

        if response.status_code != 200:
            logger.warn("BgmList", f"获取 {source_key} 失败: HTTP {response.status_code}")
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.warn("BgmList", f"{source_key} JSON 解析失败: {e}")
            return None

    async def close(self):
        await self.client.aclose()


class BangumiClient:
    def __init__(self, base_url: str = "https://api.bgm.tv"):
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json"
        }
        # Bangumi 官方的要求，不添加 User-Agent 可能会被拒绝，请参考 https://github.com/bangumi/api/blob/master/docs-raw/user%20agent.md
        self.client = httpx.AsyncClient(
            headers=self.headers,
            timeout=httpx.Timeout(10, connect=5),
        )

    async def get_subject(self, subject_id: str) -> Optional[Subject]:
        """获取条目详情，任何失败都视为没有详情"""
        try:
            response = await self.client.get(f"{self.base_url}/v0/subjects/{subject_id}")
        except httpx.TimeoutException:
            logger.warn("Bangumi", f"获取条目 {subject_id} 超时")
            return None
        except httpx.HTTPError as e:
            logger.warn("Bangumi", f"请求条目 {subject_id} 时出错: {e}")
            return None

        if response.status_code != 200:
            logger.debug("Bangumi", f"获取条目 {subject_id} 失败: HTTP {response.status_code}")
            return None

        try:
            return Subject.model_validate(response.json())
        except ValueError as e:
            logger.warn("Bangumi", f"解析条目 {subject_id} 时出错: {e}")
            return None

    async def close(self):
        await self.client.aclose()
