from typing import Any, Optional

from pydantic import BaseModel, Field


class Sender(BaseModel):
    user_id: int
    nickname: str = ""


class GroupMessage(BaseModel):
    post_type: str = Field("message")  # 固定值
    message_type: str = Field("group")  # 群聊
    sub_type: str = "normal"
    message_id: int = 0
    group_id: int
    user_id: int
    sender: Sender
    raw_message: str


class ApiResponse(BaseModel):
    """OneBot 11 HTTP 接口的统一返回格式"""
    status: str = ""
    retcode: int = -1
    data: Optional[Any] = None
    message: str = ""
    wording: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok" and self.retcode == 0
