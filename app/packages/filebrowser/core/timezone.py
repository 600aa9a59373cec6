"""时区工具方法：支持根据配置动态获取当前时区，并统一 UTC 时间的比较。"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from zoneinfo import ZoneInfo

from app.packages.filebrowser.core.config import get_settings

Clock = Callable[[], datetime]


def get_timezone() -> ZoneInfo:
    """返回配置指定的时区信息。"""
    return get_settings().timezone_info


def now() -> datetime:
    """返回当前时区的时间。"""
    return datetime.now(get_timezone())


def utc_now() -> datetime:
    """返回带时区的当前 UTC 时间，作为索引时间戳的默认时钟。"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite 读出的时间不带时区，按 UTC 解释后再参与比较。"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """将 ``datetime`` 转换为配置时区，无时区对象按 UTC 处理。"""
    aware = ensure_utc(value)
    if aware is None:
        return None
    return aware.astimezone(get_timezone())


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """输出配置时区下的 ISO-8601 字符串。"""
    localized = to_local(value)
    return localized.isoformat() if localized is not None else None
