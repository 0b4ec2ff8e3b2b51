import json
import os
import re
from typing import Dict, List, Union

from pydantic import BaseModel, Field

from infra.logger import logger

TemplateValue = Union[str, int, float]

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def format_template(template: str, values: Dict[str, TemplateValue]) -> str:
    """替换 {key} 占位符，缺失的键输出为空串"""
    def _replace(match: re.Match) -> str:
        value = values.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_replace, template)


class TodayMessages(BaseModel):
    fetch_error: str = "获取番剧数据失败，请稍后再试。"
    no_items: str = "今天是{weekday}，似乎没有新番播出哦。"
    error: str = "查询过程中发生错误，请稍后再试。"
    title: str = "📺 今日新番 ({weekday}) - {date}"


class WeekMessages(BaseModel):
    fetch_error: str = "获取番剧数据失败，请稍后再试。"
    error: str = "查询过程中发生错误，请稍后再试。"
    title: str = "📅 本周新番 - {date}"
    empty_day: str = "暂无放送"


class DayMessages(BaseModel):
    invalid_day: str = "请输入有效的数字（1-7），1为周一，7为周日。"
    fetch_error: str = "获取番剧数据失败，请稍后再试。"
    no_items: str = "{weekday}似乎没有新番播出哦。"
    error: str = "查询过程中发生错误，请稍后再试。"
    title: str = "📺 {weekday}新番 - {date}"


class ListItemMessages(BaseModel):
    line: str = "🕒 {time}  {title}  (ID: {id})"


class SubscribeMessages(BaseModel):
    invalid_id: str = "请输入有效的番剧 ID（纯数字）。"
    not_found: str = "找不到 ID 为 {id} 的番剧。请确认 ID 是否正确或该番剧是否为本季新番。"
    already: str = "番剧「{title}」已经在当前群组订阅过了。"
    success: str = "✅ 订阅成功！\n\n番剧：{title}\n播出时间：{weekday} {time}\n\n将在播出时间为您推送提醒。"
    error: str = "订阅过程中发生错误，请稍后再试。"


class ListMessages(BaseModel):
    empty: str = "当前群组暂无番剧订阅。\n\n使用「/新番 订阅 <ID>」来订阅番剧。"
    item: str = "{index}. {title}\n   播出时间：{weekday} {time}\n   番剧ID：{id}"
    header: str = "📺 当前群组的番剧订阅列表：\n\n{list}\n\n共 {count} 个订阅"
    error: str = "查看订阅时发生错误，请稍后再试。"


class DeleteMessages(BaseModel):
    empty: str = "当前群组暂无番剧订阅。"
    invalid_index: str = "序号无效。请输入 1 到 {max} 之间的数字。"
    success: str = "✅ 已成功删除订阅：{title}"
    error: str = "删除订阅时发生错误，请稍后再试。"


class ClearMessages(BaseModel):
    success: str = "✅ 已清空当前群组的所有番剧订阅。"
    error: str = "清空订阅时发生错误，请稍后再试。"


class PushTestMessages(BaseModel):
    empty: str = "当前群组暂无订阅，无法测试。"
    start: str = "将开始推送测试消息..."
    result: str = "测试完成，共成功推送 {success} / {total} 条订阅。"
    error: str = "推送测试时发生错误，请稍后再试。"


class LinkMessages(BaseModel):
    parse_fail: str = "解析bangumi链接失败，请检查链接是否正确。"
    error: str = "处理链接时发生错误，请稍后再试。"
    screenshot_label: str = "📸 网页截图："


class DetailMessages(BaseModel):
    title: str = "标题：{title}"
    title_cn: str = "中文标题：{title}"
    air_time: str = "播出时间：{time}"
    air_date: str = "开播日期：{date}"
    rating: str = "⭐ 评分：{rating}"
    rank: str = "📈 排名：{rank}"
    platform: str = "📺 平台：{platforms}"
    summary: str = "📝 简介：{summary}"
    link: str = "🔗 链接：{url}"
    unknown: str = "未知"
    time_unknown: str = "时间未知"


class PushMessages(BaseModel):
    title: str = "📺 番剧播出提醒"
    test_title: str = "📢 番剧订阅测试"
    message: str = "{title}\n\n{name}\n播出时间：{weekday} {time}\n番剧链接：{url}"


class HelpMessages(BaseModel):
    usage: str = (
        "番剧服务由 bgmlist.com 与 Bangumi 提供。\n"
        "可用指令：\n"
        "/新番 今日新番\n"
        "/新番 本周新番\n"
        "/新番 查看新番 <1-7>\n"
        "/新番 订阅 <番剧ID>\n"
        "/新番 查看订阅\n"
        "/新番 删除订阅 <序号>\n"
        "/新番 清空订阅\n"
        "/新番 订阅推送测试"
    )


class MessageTemplates(BaseModel):
    week_names: List[str] = Field(
        default_factory=lambda: ["", "周一", "周二", "周三", "周四", "周五", "周六", "周日"]
    )
    today: TodayMessages = Field(default_factory=TodayMessages)
    week: WeekMessages = Field(default_factory=WeekMessages)
    day: DayMessages = Field(default_factory=DayMessages)
    list_item: ListItemMessages = Field(default_factory=ListItemMessages)
    subscribe: SubscribeMessages = Field(default_factory=SubscribeMessages)
    list: ListMessages = Field(default_factory=ListMessages)
    delete: DeleteMessages = Field(default_factory=DeleteMessages)
    clear: ClearMessages = Field(default_factory=ClearMessages)
    test: PushTestMessages = Field(default_factory=PushTestMessages)
    link: LinkMessages = Field(default_factory=LinkMessages)
    detail: DetailMessages = Field(default_factory=DetailMessages)
    push: PushMessages = Field(default_factory=PushMessages)
    help: HelpMessages = Field(default_factory=HelpMessages)

    def weekday_name(self, weekday: int) -> str:
        if 1 <= weekday < len(self.week_names):
            return self.week_names[weekday]
        return self.detail.unknown


def load_messages(json_file: str) -> MessageTemplates:
    """从文件加载消息模板，未配置或读取失败时使用默认模板"""
    if not json_file or not os.path.exists(json_file):
        return MessageTemplates()
    try:
        with open(json_file, "r", encoding="utf-8") as f:
            return MessageTemplates.model_validate(json.load(f))
    except Exception as e:
        logger.warn("Messages", f"加载消息模板失败，使用默认模板: {e}")
        return MessageTemplates()
