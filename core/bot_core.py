from adapter.napcat.http_api import NapCatApiError, NapCatHttpClient
from adapter.napcat.models import GroupMessage
from adapter.napcat.ws_client import NapCatWsClient
from infra.config.messages import load_messages
from infra.config.settings import Settings
from infra.logger import Logger
from service.bangumi.cache import CalendarCache
from service.bangumi.client import BangumiClient, BgmListClient
from service.bangumi.screenshot import BangumiScreenshot
from service.bangumi.service import BangumiService
from service.subscription.service import SubscriptionService
from service.subscription.store import JsonSubscriptionStore
from .handler import Handler
from .pusher.delivery import Delivery
from .pusher.pusher import Pusher
from .pusher.subscription_scheduler import SubscriptionScheduler
from .router import Router


class Bot:
    def __init__(self, settings, router, http_client, ws_client, handler, pusher, bangumi_svc):
        self.settings = settings
        self.router = router
        self.http_client = http_client
        self.ws_client = ws_client
        self.handler = handler
        self.pusher = pusher
        self.bangumi_svc = bangumi_svc

    @classmethod
    def create(cls, settings: Settings = None) -> "Bot":
        settings = settings or Settings()
        Logger.set_debug(settings.DEBUG)
        messages = load_messages(settings.MESSAGES_FILE)

        http_client = NapCatHttpClient(settings.NAPCAT_HTTP, settings.NAPCAT_HTTP_AUTH_TOKEN)

        cache = CalendarCache(BgmListClient(settings.BGMLIST_BASE_URL), timezone=settings.TIMEZONE)
        screenshot = BangumiScreenshot() if settings.ENABLE_WEBPAGE_SCREENSHOT else None
        bangumi_svc = BangumiService(
            cache,
            BangumiClient(settings.BANGUMI_API_BASE_URL),
            screenshot=screenshot,
            timezone=settings.TIMEZONE,
        )

        store = JsonSubscriptionStore(settings.SUBSCRIPTION_STORE_PATH)
        subscription_svc = SubscriptionService(store, bangumi_svc)
        scheduler = SubscriptionScheduler(
            store,
            Delivery([http_client]),
            messages=messages,
            interval_minutes=settings.SUBSCRIPTION_INTERVAL,
            timezone=settings.TIMEZONE,
        )

        handler = Handler(
            http_client,
            bangumi_svc,
            subscription_svc,
            scheduler,
            messages=messages,
            details_for_today=settings.DETAILS_FOR_TODAY,
            enable_screenshot=settings.ENABLE_WEBPAGE_SCREENSHOT,
            timezone=settings.TIMEZONE,
        )
        router = Router()
        pusher = Pusher([scheduler])
        return cls(settings, router, http_client, None, handler, pusher, bangumi_svc)

    async def start(self):
        """调用链：启动WebSocket客户端 -> WebSocket接收到msg -> 触发回调 -> 发送到router进行转发 -> 对应handler处理"""
        async def on_msg(msg: GroupMessage):
            Logger.info("Message received", f"[{msg.group_id}:{msg.sender.nickname}({msg.user_id})] {msg.raw_message}")
            await self.router.dispatch(msg, self.handler)

        self.ws_client = NapCatWsClient(self.settings.NAPCAT_WS, self.settings.NAPCAT_WS_AUTH_TOKEN, on_msg)

        try:
            info = await self.http_client.get_login_info()
            Logger.info("BotCore", "NapCat登录账号: {}({})".format(info.get("nickname"), info.get("user_id")))
        except NapCatApiError as e:
            Logger.warn("BotCore", f"获取登录信息失败: {e}")

        self.pusher.start()

        await self.ws_client.start()

    async def stop(self):
        """先停定时器，保证关闭连接之后不会再有推送"""
        await self.pusher.stop()
        if self.ws_client is not None:
            await self.ws_client.stop()
        await self.bangumi_svc.close()
        await self.http_client.close()
        Logger.info("BotCore", "Bot Stopped")
