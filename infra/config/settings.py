from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # NapCat 网络配置
    NAPCAT_WS: str = "ws://127.0.0.1:3001"
    NAPCAT_WS_AUTH_TOKEN: str = "<Token>"
    NAPCAT_HTTP: str = "http://127.0.0.1:3000"
    NAPCAT_HTTP_AUTH_TOKEN: str = "<Token>"

    # 订阅推送
    SUBSCRIPTION_INTERVAL: int = 60  # 分钟，同时决定检查窗口宽度
    SUBSCRIPTION_STORE_PATH: str = "cache/bangumi_subscriptions.json"
    TIMEZONE: str = "Asia/Shanghai"

    # 输出相关
    DEBUG: bool = False
    DETAILS_FOR_TODAY: bool = False
    ENABLE_WEBPAGE_SCREENSHOT: bool = False
    MESSAGES_FILE: str = ""

    # 数据源
    BGMLIST_BASE_URL: str = "https://bgmlist.com/api/v1/bangumi"
    BANGUMI_API_BASE_URL: str = "https://api.bgm.tv"

    @field_validator("SUBSCRIPTION_INTERVAL")
    @classmethod
    def check_interval(cls, v: int) -> int:
        if v < 1:
            raise ValueError("SUBSCRIPTION_INTERVAL must be at least 1 minute")
        return v
