from enum import Enum
from typing import Protocol, Sequence

from infra.logger import logger


class AgentStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class DeliveryAgent(Protocol):
    name: str

    async def get_status(self) -> AgentStatus: ...

    async def send_message(self, channel_id: str, text: str) -> None: ...


class Delivery:
    """从代理池中选第一个在线的代理发送消息，不做负载均衡，也不在同一次调用里换代理重试"""

    def __init__(self, agents: Sequence[DeliveryAgent]):
        self.agents = list(agents)

    async def _pick_agent(self):
        for agent in self.agents:
            try:
                status = await agent.get_status()
            except Exception as e:
                logger.warn("Delivery", f"查询代理 {agent.name} 状态失败: {e}")
                continue
            if status == AgentStatus.ONLINE:
                return agent
        return None

    async def deliver(self, channel_id: str, text: str) -> bool:
        agent = await self._pick_agent()
        if agent is None:
            logger.warn("Delivery", "没有在线的代理可用于推送")
            return False

        try:
            await agent.send_message(channel_id, text)
        except Exception as e:
            logger.error("Delivery", f"通过 {agent.name} 推送到 {channel_id} 失败: {e}")
            return False

        logger.debug("Delivery", f"已通过 {agent.name} 推送到 {channel_id}")
        return True
