"""统一的管理员/权限保护封装。

集中维护关于"管理员用户"的判定与拦截逻辑，避免到处散落硬编码，便于后期统一调整。
"""

from __future__ import annotations

from typing import Optional

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.enums import PermissionEnum, RoleEnum
from app.packages.filebrowser.core.exceptions import ForbiddenError
from app.packages.filebrowser.core.permissions import has_permission


def is_admin_user(user: object) -> bool:
    """按角色判定特权身份。"""
    return getattr(user, "role", None) == RoleEnum.ADMIN.value


def is_default_admin_username(username: Optional[str]) -> bool:
    expected = get_settings().default_admin_username.strip().lower()
    return (username or "").strip().lower() == expected


def forbid_if_default_admin(user: object, *, message: str) -> None:
    if is_default_admin_username(getattr(user, "username", None)):
        raise ForbiddenError(message)


_PERMISSION_MESSAGES = {
    PermissionEnum.READ: "没有读取文件的权限",
    PermissionEnum.WRITE: "没有创建或上传文件的权限",
    PermissionEnum.SHARE: "没有分享文件的权限",
    PermissionEnum.RENAME: "没有重命名文件或文件夹的权限",
    PermissionEnum.DELETE: "没有删除文件或文件夹的权限",
    PermissionEnum.MOVE: "没有移动文件或文件夹的权限",
}


def require_permission(user: object, permission: PermissionEnum) -> None:
    if not has_permission(user, permission):
        raise ForbiddenError(_PERMISSION_MESSAGES[permission])
