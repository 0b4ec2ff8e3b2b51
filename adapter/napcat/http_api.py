from typing import Any, Dict, Optional

import httpx

from core.pusher.delivery import AgentStatus
from infra.logger import logger
from .models import ApiResponse


class NapCatApiError(Exception):
    pass


class NapCatHttpClient:
    """
    NapCat (OneBot 11) HTTP 接口，同时作为推送使用的投递代理
    接口文档参考 https://napcat.apifox.cn/
    """

    def __init__(self, base_url: str, token: str = "", name: str = "napcat"):
        self.base_url = base_url.rstrip("/")
        self.name = name
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(10, connect=5),
        )

    async def _call(self, action: str, payload: Optional[Dict[str, Any]] = None) -> ApiResponse:
        try:
            response = await self.client.post(f"{self.base_url}/{action}", json=payload or {})
        except httpx.TimeoutException as e:
            raise NapCatApiError(f"{action} 超时") from e
        except httpx.HTTPError as e:
            raise NapCatApiError(f"{action} 请求失败: {e}") from e

        if response.status_code != 200:
            raise NapCatApiError(f"{action} 失败: HTTP {response.status_code}")

        try:
            result = ApiResponse.model_validate(response.json())
        except ValueError as e:
            raise NapCatApiError(f"{action} 响应解析失败: {e}") from e

        if not result.ok:
            raise NapCatApiError(f"{action} 失败: retcode={result.retcode} {result.wording or result.message}")
        return result

    async def send_group_msg(self, group_id: int, message: str) -> Optional[int]:
        """发送群消息，返回 message_id"""
        result = await self._call("send_group_msg", {"group_id": int(group_id), "message": message})
        if isinstance(result.data, dict):
            return result.data.get("message_id")
        return None

    async def get_login_info(self) -> Dict[str, Any]:
        result = await self._call("get_login_info")
        return result.data or {}

    async def get_status(self) -> AgentStatus:
        try:
            result = await self._call("get_status")
        except NapCatApiError as e:
            logger.warn("NapCatHttp", f"获取状态失败: {e}")
            return AgentStatus.OFFLINE
        data = result.data if isinstance(result.data, dict) else {}
        return AgentStatus.ONLINE if data.get("online") else AgentStatus.OFFLINE

    async def send_message(self, channel_id: str, text: str) -> None:
        await self.send_group_msg(int(channel_id), text)

    async def close(self):
        await self.client.aclose()
