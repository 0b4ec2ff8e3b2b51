import asyncio
from typing import List

from infra.logger import logger
from .subscription_scheduler import SubscriptionScheduler


class Pusher:
    def __init__(self, schedulers: List[SubscriptionScheduler]):
        self._pushers = list(schedulers)

    def start(self):
        for p in self._pushers:
            p.start()
        logger.info("Pusher", "Pusher Start")

    async def stop(self):
        for p in self._pushers:
            p.stop()
        await asyncio.sleep(0)
