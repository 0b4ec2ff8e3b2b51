from typing import Optional, Tuple

from adapter.napcat.models import GroupMessage
from core.handler import Handler
from service.bangumi.service import BangumiService

COMMAND_PREFIXES = ("/新番", "/番剧订阅", "/番组订阅")


class Router:
    def __init__(self, prefixes: Tuple[str, ...] = COMMAND_PREFIXES):
        # 长的前缀优先匹配
        self._prefixes = sorted(prefixes, key=len, reverse=True)

    async def dispatch(self, message: GroupMessage, handler: Handler):
        text = message.raw_message.strip()

        args = self.match_command(text)
        if args is not None:
            await handler.bangumi_handler(message.group_id, args)
            return

        url = BangumiService.extract_subject_link(text)
        if url:
            await handler.link_handler(message.group_id, url)

    def match_command(self, text: str) -> Optional[str]:
        """命中命令前缀时返回去掉前缀后的参数，否则返回 None"""
        for prefix in self._prefixes:
            if text == prefix:
                return ""
            if text.startswith(prefix) and text[len(prefix)].isspace():
                return text[len(prefix):].strip()
        return None
