"""存储统计服务：用户占用空间与磁盘使用情况。"""

from __future__ import annotations

import os
import shutil

from sqlalchemy.orm import Session

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.constants import HTTP_STATUS_OK
from app.packages.filebrowser.core.exceptions import StorageIOError
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.core.responses import create_response
from app.packages.filebrowser.crud.file_metadata import file_metadata_crud
from app.packages.filebrowser.crud.path_registry import home_prefix
from app.packages.filebrowser.crud.users import user_crud

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(size: int) -> str:
    """以 1024 为进制格式化字节数，最多保留两位小数并去掉末尾的 0。"""
    if size <= 0:
        return "0 B"
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(_SIZE_UNITS) - 1:
        exponent += 1
    value = ("%.2f" % (size / 1024**exponent)).rstrip("0").rstrip(".")
    return f"{value} {_SIZE_UNITS[exponent]}"


class StatsService:
    def user_storage(self, db: Session) -> dict:
        """按元数据缓存统计每个普通用户主目录下的文件总大小。"""
        stats = []
        for user in user_crud.list_all(db):
            if user.is_admin:
                continue
            total = file_metadata_crud.sum_file_sizes_under_virtual(db, home_prefix(user.username))
            stats.append(
                {
                    "id": user.id,
                    "username": user.username,
                    "totalSize": total,
                    "formattedSize": format_size(total),
                }
            )
        return create_response("获取用户存储统计成功", stats, HTTP_STATUS_OK)

    def disk_usage(self) -> dict:
        target = str(get_settings().admin_home_path)
        try:
            usage = shutil.disk_usage(target)
        except OSError as exc:
            logger.warning("stats.disk_usage_fallback path=%s error=%s", target, exc)
            try:
                usage = shutil.disk_usage(os.path.abspath(os.sep))
            except OSError as root_exc:
                raise StorageIOError("获取磁盘使用情况失败") from root_exc

        used = usage.total - usage.free
        data = {
            "total": usage.total,
            "free": usage.free,
            "used": used,
            "formattedTotal": format_size(usage.total),
            "formattedFree": format_size(usage.free),
            "formattedUsed": format_size(used),
        }
        return create_response("获取磁盘使用情况成功", data, HTTP_STATUS_OK)


stats_service = StatsService()
