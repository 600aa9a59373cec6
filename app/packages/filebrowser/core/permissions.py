"""权限集合：将存储层的原始字符串列表在边界处解析为枚举集合。"""

from __future__ import annotations

from typing import Iterable, Optional

from app.packages.filebrowser.core.enums import PermissionEnum, RoleEnum
from app.packages.filebrowser.core.logger import logger

PermissionSet = frozenset[PermissionEnum]

ALL_PERMISSIONS: PermissionSet = frozenset(PermissionEnum)


def parse_permissions(raw: Optional[Iterable[str]], *, strict: bool = True) -> PermissionSet:
    """解析权限列表。

    ``strict`` 为真时遇到未知权限抛出 ``ValueError``；否则记录告警并丢弃，
    用于读取历史数据。
    """
    result: set[PermissionEnum] = set()
    for item in raw or ():
        token = str(item).strip().lower()
        if not token:
            continue
        try:
            result.add(PermissionEnum(token))
        except ValueError:
            if strict:
                raise ValueError(f"未知的权限: {item}") from None
            logger.warning("Dropping unknown permission value %r", item)
    return frozenset(result)


def dump_permissions(permissions: Iterable[PermissionEnum]) -> list[str]:
    """序列化为稳定排序的字符串列表，便于入库与比较。"""
    return sorted(PermissionEnum(p).value for p in permissions)


def has_permission(user: object, permission: PermissionEnum) -> bool:
    """管理员拥有全部权限，其余用户按权限集合判定。"""
    if user is None:
        return False
    if getattr(user, "role", None) == RoleEnum.ADMIN.value:
        return True
    return permission in (getattr(user, "permissions", None) or frozenset())


def effective_permissions(user: object) -> PermissionSet:
    if getattr(user, "role", None) == RoleEnum.ADMIN.value:
        return ALL_PERMISSIONS
    return frozenset(getattr(user, "permissions", None) or ())
