"""路径注册表：持久化 ``(用户, 虚拟前缀) -> 真实目录`` 映射，并提供解析查询。

解析顺序：
1. 与某条映射的虚拟前缀完全相同；
2. 在所有能匹配的前缀中取最长者（最具体者）并拼接余下部分。用户主目录
   ``/{username}`` 只是其中一条映射：没有更长的自定义映射命中时由它兜底，
   存在更长的映射（如 ``/alice/work``）时让位于后者。

前缀比较默认按路径段进行，``PATH_PREFIX_MATCH=string`` 时退化为纯字符串前缀。
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.crud.base import CRUDBase
from app.packages.filebrowser.crud.users import user_crud
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.models.user_path import UserPath
from app.packages.filebrowser.utils.path_utils import (
    normalize_virtual_path,
    prefix_matches,
    splice,
    strip_trailing_slash,
)


@dataclass(frozen=True)
class PathMatch:
    """一次成功解析：命中的映射、拼接后的真实路径与命中方式。"""

    mapping: UserPath
    real_path: str
    strategy: str  # "exact" | "home" | "prefix"


def home_prefix(username: str) -> str:
    return f"/{username}"


def _canonical_real_path(real_path: str) -> str:
    return os.path.abspath(os.path.expanduser(real_path))


class PathRegistry(CRUDBase[UserPath]):
    """注册表是映射的唯一写入方。"""

    def get_all(self, db: Session) -> List[UserPath]:
        return self.query(db).order_by(UserPath.id.asc()).all()

    def get_by_user_id(self, db: Session, user_id: int) -> List[UserPath]:
        return self.query(db).filter(UserPath.user_id == user_id).order_by(UserPath.id.asc()).all()

    def get_by_username_and_virtual_path(self, db: Session, username: str, virtual_path: str) -> Optional[UserPath]:
        key = strip_trailing_slash(normalize_virtual_path(virtual_path))
        return (
            self.query(db)
            .join(User, User.id == UserPath.user_id)
            .filter(User.username == username, UserPath.virtual_path == key)
            .first()
        )

    def get_home(self, db: Session, username: str) -> Optional[UserPath]:
        return self.get_by_username_and_virtual_path(db, username, home_prefix(username))

    def home_paths(self, db: Session) -> Dict[str, str]:
        """``{username: real_path}``，仅包含规范主目录映射。"""
        rows = (
            db.query(User.username, UserPath.real_path, UserPath.virtual_path)
            .join(UserPath, UserPath.user_id == User.id)
            .order_by(User.id.asc())
            .all()
        )
        return {username: real for username, real, virtual in rows if virtual == home_prefix(username)}

    def set_path(
        self,
        db: Session,
        username: str,
        virtual_prefix: str,
        real_path: str,
        *,
        auto_commit: bool = True,
    ) -> bool:
        """新建或覆盖 ``(username, virtual_prefix)`` 的真实路径；用户不存在时返回 ``False``。"""
        user = user_crud.get_by_username(db, username)
        if user is None:
            logger.warning("path_registry.set_path unknown user=%s", username)
            return False

        key = strip_trailing_slash(normalize_virtual_path(virtual_prefix))
        canonical = _canonical_real_path(real_path)
        existing = (
            self.query(db)
            .filter(UserPath.user_id == user.id, UserPath.virtual_path == key)
            .first()
        )
        if existing is not None:
            existing.real_path = canonical
            self.save(db, existing, auto_commit=auto_commit)
        else:
            self.create(
                db,
                {"user_id": user.id, "virtual_path": key, "real_path": canonical},
                auto_commit=auto_commit,
            )
        logger.info("path_registry.set_path user=%s virtual=%s real=%s", username, key, canonical)
        return True

    def is_mapped_root(self, db: Session, real_path: str) -> bool:
        """``real_path`` 是否正是某条映射的真实根目录。"""
        target = os.path.normpath(real_path)
        return any(os.path.normpath(m.real_path) == target for m in self.get_all(db))

    # ------------------------------------------------------------------
    # 解析
    # ------------------------------------------------------------------

    def match(
        self,
        db: Session,
        user: User,
        virtual_path: str,
        *,
        segment_aware: Optional[bool] = None,
    ) -> Optional[PathMatch]:
        if segment_aware is None:
            segment_aware = get_settings().segment_aware_prefix
        target = strip_trailing_slash(normalize_virtual_path(virtual_path))
        mappings = self.get_by_user_id(db, user.id)

        for mapping in mappings:
            if mapping.virtual_path == target:
                return PathMatch(mapping, mapping.real_path, "exact")

        candidates = [m for m in mappings if prefix_matches(m.virtual_path, target, segment_aware=segment_aware)]
        if not candidates:
            return None
        best = max(candidates, key=lambda m: len(m.virtual_path))
        remainder = target[len(best.virtual_path):]
        strategy = "home" if best.virtual_path == home_prefix(user.username) else "prefix"
        return PathMatch(best, splice(best.real_path, remainder), strategy)

    def get_real_path(self, db: Session, username: str, virtual_path: str) -> Optional[str]:
        """按用户名解析虚拟路径，未命中返回 ``None``。"""
        user = user_crud.get_by_username(db, username)
        if user is None:
            return None
        found = self.match(db, user, virtual_path)
        return found.real_path if found else None

    def get_real_path_by_id(
        self,
        db: Session,
        user_id_or_name: Union[int, str, None],
        virtual_path: str,
    ) -> Optional[PathMatch]:
        """与 ``get_real_path`` 相同，但接受用户 ID、数字字符串或用户名。"""
        user = user_crud.get_by_id_or_username(db, user_id_or_name)
        if user is None:
            return None
        return self.match(db, user, virtual_path)


path_registry = PathRegistry(UserPath)
