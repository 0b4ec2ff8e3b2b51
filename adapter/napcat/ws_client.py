import asyncio
import json
from typing import Awaitable, Callable, Optional

import aiohttp
from pydantic import ValidationError

from infra.logger import logger
from .models import GroupMessage

MessageCallback = Callable[[GroupMessage], Awaitable[None]]

RECONNECT_MIN_SECONDS = 1
RECONNECT_MAX_SECONDS = 60


class NapCatWsClient:
    """NapCat 正向 WebSocket，只转发群消息事件，断线后指数退避重连"""

    def __init__(self, url: str, token: str, on_message: MessageCallback):
        self.url = url
        self.token = token
        self.on_message = on_message
        self._running = False
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._tasks: set[asyncio.Task] = set()

    async def start(self):
        self._running = True
        delay = RECONNECT_MIN_SECONDS
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        self._session = aiohttp.ClientSession(headers=headers)
        try:
            while self._running:
                try:
                    async with self._session.ws_connect(self.url, heartbeat=30) as ws:
                        self._ws = ws
                        logger.info("NapCatWs", f"已连接 {self.url}")
                        delay = RECONNECT_MIN_SECONDS
                        await self._read_loop(ws)
                except aiohttp.ClientError as e:
                    logger.warn("NapCatWs", f"连接失败: {e}")
                finally:
                    self._ws = None

                if not self._running:
                    break
                logger.info("NapCatWs", f"{delay} 秒后重连")
                await asyncio.sleep(delay)
                delay = min(delay * 2, RECONNECT_MAX_SECONDS)
        finally:
            await self._session.close()
            self._session = None

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse):
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._dispatch(msg.data)
            elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break

    def _dispatch(self, raw: str):
        try:
            event = json.loads(raw)
        except ValueError:
            logger.warn("NapCatWs", f"无法解析的事件: {raw[:200]}")
            return
        if not isinstance(event, dict):
            return
        if event.get("post_type") != "message" or event.get("message_type") != "group":
            return
        try:
            message = GroupMessage.model_validate(event)
        except ValidationError as e:
            logger.warn("NapCatWs", f"群消息格式不正确: {e}")
            return

        # 每条消息独立处理，互不阻塞
        task = asyncio.create_task(self._handle(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle(self, message: GroupMessage):
        try:
            await self.on_message(message)
        except Exception as e:
            logger.error("NapCatWs", f"处理群 {message.group_id} 消息时出错: {e}")

    async def stop(self):
        self._running = False
        if self._ws is not None:
            await self._ws.close()
        for task in list(self._tasks):
            task.cancel()
