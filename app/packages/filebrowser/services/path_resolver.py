"""路径解析服务：把 ``(身份, 虚拟路径)`` 翻译为物理路径。

所有涉及文件系统的操作都经由这里解析。解析顺序：

1. Windows 风格的原生绝对路径原样返回；
2. 管理员访问 ``/`` 或 ``/all`` 时返回"虚拟根"，由调用方列出全部用户；
3. 形如 ``/{someone}/rest`` 且 ``someone`` 不是当前用户：
   - ``someone`` 是已知用户：管理员按该用户的映射解析，普通用户 403；
   - ``someone`` 不是已知用户：先按当前用户自己的映射解析，管理员未命中时
     视为自己主目录下的子目录，虚拟路径改写为 ``/{管理员}/...``；
4. 其余情况交给路径注册表按当前用户解析，未命中 404；普通用户的 ``/``
   即其主目录。

解析成功后按需创建目录：目录形态的路径（以 '/' 结尾或无扩展名）创建自身，
文件形态的路径创建其父目录。解析不会修改注册表。
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.packages.filebrowser.core.constants import VIRTUAL_ROOT_PATHS
from app.packages.filebrowser.core.exceptions import ForbiddenError, NotFoundError, StorageIOError
from app.packages.filebrowser.core.guards import is_admin_user
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.crud.path_registry import home_prefix, path_registry
from app.packages.filebrowser.crud.users import user_crud
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.utils.path_utils import (
    is_native_absolute,
    looks_like_directory,
    normalize_virtual_path,
    splice,
    split_user_segment,
    strip_trailing_slash,
)


@dataclass(frozen=True)
class ResolvedPath:
    """解析结果；虚拟根没有物理路径。"""

    virtual_path: str
    physical_path: Optional[str]
    strategy: str
    owner: Optional[str] = None

    @property
    def is_virtual_root(self) -> bool:
        return self.strategy == "virtual-root"


class PathResolver:
    def resolve(
        self,
        db: Session,
        identity: User,
        virtual_path: Optional[str],
        *,
        create_missing: bool = True,
    ) -> ResolvedPath:
        raw = (virtual_path or "/").strip()
        if is_native_absolute(raw):
            logger.info("path_resolver.native_passthrough user=%s path=%s", identity.username, raw)
            return ResolvedPath(virtual_path=raw, physical_path=raw, strategy="native")

        normalized = normalize_virtual_path(raw)
        key = strip_trailing_slash(normalized)
        privileged = is_admin_user(identity)

        if privileged and key in VIRTUAL_ROOT_PATHS:
            return ResolvedPath(virtual_path="/", physical_path=None, strategy="virtual-root")
        if key == "/":
            # 普通用户的根目录即其主目录
            key = home_prefix(identity.username)

        resolved = self._resolve_mapped(db, identity, key, privileged)
        if create_missing:
            self._ensure_directory(resolved.physical_path, normalized)
        logger.debug(
            "path_resolver.resolve user=%s virtual=%s physical=%s strategy=%s",
            identity.username,
            key,
            resolved.physical_path,
            resolved.strategy,
        )
        return resolved

    def _resolve_mapped(self, db: Session, identity: User, key: str, privileged: bool) -> ResolvedPath:
        segment = split_user_segment(key)
        if segment is not None and segment[0] != identity.username:
            name, rest = segment
            target = user_crud.get_by_username(db, name)
            if target is not None:
                if not privileged:
                    raise ForbiddenError("无权访问其他用户的目录")
                found = path_registry.match(db, target, key)
                if found is None:
                    raise NotFoundError(f"用户 {name} 没有可用的路径映射")
                return ResolvedPath(key, found.real_path, "cross-user", owner=target.username)

            found = path_registry.match(db, identity, key)
            if found is not None:
                return ResolvedPath(key, found.real_path, found.strategy, owner=identity.username)
            if not privileged:
                raise NotFoundError("未找到路径映射")
            home = path_registry.get_home(db, identity.username)
            if home is None:
                raise NotFoundError("管理员主目录未配置")
            # 未知的首段按管理员主目录下的普通子目录处理
            physical = splice(home.real_path, f"{name}/{rest}" if rest else name)
            return ResolvedPath(
                home_prefix(identity.username) + key, physical, "admin-subdir", owner=identity.username
            )

        found = path_registry.match(db, identity, key)
        if found is None:
            raise NotFoundError("未找到路径映射")
        return ResolvedPath(key, found.real_path, found.strategy, owner=identity.username)

    @staticmethod
    def _ensure_directory(physical_path: str, normalized_virtual: str) -> None:
        target = physical_path if looks_like_directory(normalized_virtual) else os.path.dirname(physical_path)
        if not target or os.path.lexists(target):
            return
        try:
            os.makedirs(target, exist_ok=True)
        except OSError as exc:
            logger.error("path_resolver.mkdir_failed path=%s error=%s", target, exc)
            raise StorageIOError(f"创建目录失败: {exc.strerror or exc}") from exc
        logger.info("path_resolver.mkdir path=%s", target)


path_resolver = PathResolver()
