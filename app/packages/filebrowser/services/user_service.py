"""用户服务：账号管理与用户主目录映射的维护。

创建用户与登记主目录映射不是原子操作：先创建用户，再创建目录并写入
``/{username}`` 映射，最后回读校验；任一步失败都会删除刚创建的用户。
"""

from __future__ import annotations

import os
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.filebrowser.core.constants import (
    HTTP_STATUS_INTERNAL_SERVER_ERROR,
    HTTP_STATUS_OK,
    RESERVED_USERNAMES,
)
from app.packages.filebrowser.core.enums import PermissionEnum, RoleEnum
from app.packages.filebrowser.core.exceptions import (
    AppException,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageIOError,
)
from app.packages.filebrowser.core.guards import forbid_if_default_admin, is_admin_user
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.core.permissions import dump_permissions
from app.packages.filebrowser.core.responses import create_response
from app.packages.filebrowser.core.security import get_password_hash
from app.packages.filebrowser.core.session import revoke_user_sessions
from app.packages.filebrowser.core.timezone import isoformat
from app.packages.filebrowser.crud.path_registry import home_prefix, path_registry
from app.packages.filebrowser.crud.users import user_crud
from app.packages.filebrowser.models.user import User


class UserService:
    """聚合用户管理相关的业务能力。"""

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def list_users(self, db: Session) -> dict:
        items = [self._serialize_user(user) for user in user_crud.list_all(db)]
        return create_response("获取用户列表成功", items, HTTP_STATUS_OK)

    def list_home_paths(self, db: Session) -> dict:
        return create_response("获取用户目录成功", path_registry.home_paths(db), HTTP_STATUS_OK)

    # ------------------------------------------------------------------
    # 增删改
    # ------------------------------------------------------------------

    def create_user(
        self,
        db: Session,
        *,
        username: str,
        password: str,
        custom_path: str,
        role: RoleEnum = RoleEnum.USER,
        permissions: Iterable[PermissionEnum] = (),
        can_rename: bool = False,
        can_delete: bool = False,
        can_move: bool = False,
    ) -> dict:
        trimmed_username = (username or "").strip()
        if not trimmed_username:
            raise AppException("用户名不能为空")
        if trimmed_username.lower() in RESERVED_USERNAMES:
            raise AppException("用户名为系统保留名称")
        if not (custom_path or "").strip():
            raise AppException("创建用户时必须指定用户目录")
        if user_crud.get_by_username(db, trimmed_username):
            raise ConflictError("用户名已存在")

        granted = set(permissions)
        if can_rename:
            granted.add(PermissionEnum.RENAME)
        if can_delete:
            granted.add(PermissionEnum.DELETE)
        if can_move:
            granted.add(PermissionEnum.MOVE)

        user = user_crud.create_user(
            db,
            username=trimmed_username,
            hashed_password=get_password_hash(password),
            role=RoleEnum(role).value,
            permissions=granted,
        )
        user_id = user.id
        try:
            self._provision_home(db, trimmed_username, custom_path)
        except (OSError, SQLAlchemyError, AppException) as exc:
            db.rollback()
            logger.error("users.provision_failed username=%s path=%s error=%s", trimmed_username, custom_path, exc)
            self._compensate(db, user_id)
            raise AppException("设置用户目录失败，已撤销用户创建", HTTP_STATUS_INTERNAL_SERVER_ERROR) from exc

        db.refresh(user)
        logger.info("users.create username=%s role=%s", user.username, user.role)
        return create_response("创建用户成功", self._serialize_user(user), HTTP_STATUS_OK)

    def update_user(
        self,
        db: Session,
        *,
        user_id: int,
        role: Optional[RoleEnum] = None,
        permissions: Optional[Iterable[PermissionEnum]] = None,
        password: Optional[str] = None,
        custom_path: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> dict:
        user = self._get_user_or_404(db, user_id)

        if role is not None and RoleEnum(role) != RoleEnum.ADMIN:
            forbid_if_default_admin(user, message="默认管理员的角色不可修改")
        if is_active is False:
            forbid_if_default_admin(user, message="默认管理员不可停用")

        if role is not None:
            user.role = RoleEnum(role).value
        if permissions is not None:
            user.permissions = permissions
        if is_active is not None:
            user.is_active = is_active
        if password:
            user.hashed_password = get_password_hash(password)
        user_crud.save(db, user)

        if custom_path:
            try:
                self._provision_home(db, user.username, custom_path)
            except OSError as exc:
                raise StorageIOError(f"创建用户目录失败: {exc.strerror or exc}") from exc
            db.refresh(user)

        if password or is_active is False:
            revoke_user_sessions(user.id)
        logger.info("users.update id=%s username=%s", user.id, user.username)
        return create_response("更新用户成功", self._serialize_user(user), HTTP_STATUS_OK)

    def delete_user(self, db: Session, *, user_id: int, current_user: User) -> dict:
        user = self._get_user_or_404(db, user_id)
        forbid_if_default_admin(user, message="默认管理员不可删除")
        if user.id == current_user.id:
            raise ForbiddenError("不能删除当前登录的用户")

        username = user.username
        user_crud.hard_delete(db, user)
        revoke_user_sessions(user_id)
        logger.info("users.delete id=%s username=%s", user_id, username)
        return create_response("删除用户成功", {"id": user_id, "username": username}, HTTP_STATUS_OK)

    def change_password(self, db: Session, *, user_id: int, password: str, current_user: User) -> dict:
        """管理员可修改任意用户密码，普通用户只能修改自己的密码。"""
        if current_user.id != user_id and not is_admin_user(current_user):
            raise ForbiddenError("无权修改其他用户的密码")
        user = self._get_user_or_404(db, user_id)
        user.hashed_password = get_password_hash(password)
        user_crud.save(db, user)
        if user.id != current_user.id:
            revoke_user_sessions(user.id)
        logger.info("users.password_changed id=%s by=%s", user.id, current_user.username)
        return create_response("修改密码成功", None, HTTP_STATUS_OK)

    def set_user_path(self, db: Session, *, username: str, custom_path: str) -> dict:
        user = user_crud.get_by_username(db, username)
        if user is None:
            raise NotFoundError("用户不存在")
        try:
            real_path = self._provision_home(db, user.username, custom_path)
        except OSError as exc:
            raise StorageIOError(f"创建用户目录失败: {exc.strerror or exc}") from exc
        return create_response(
            "设置用户目录成功",
            {"username": user.username, "virtualPath": home_prefix(user.username), "realPath": real_path},
            HTTP_STATUS_OK,
        )

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    def _provision_home(self, db: Session, username: str, custom_path: str) -> str:
        """创建目录、登记 ``/{username}`` 映射并回读校验，返回规范化后的真实路径。"""
        real_path = os.path.abspath(os.path.expanduser(custom_path.strip()))
        os.makedirs(real_path, exist_ok=True)
        if not path_registry.set_path(db, username, home_prefix(username), real_path):
            raise StorageIOError("登记用户目录映射失败")
        saved = path_registry.get_home(db, username)
        if saved is None or os.path.normpath(saved.real_path) != os.path.normpath(real_path):
            raise StorageIOError("用户目录映射校验失败")
        return saved.real_path

    def _compensate(self, db: Session, user_id: int) -> None:
        user = user_crud.get(db, user_id)
        if user is not None:
            user_crud.hard_delete(db, user)
            logger.info("users.compensate deleted id=%s", user_id)

    def _get_user_or_404(self, db: Session, user_id: int) -> User:
        user = user_crud.get(db, user_id)
        if user is None:
            raise NotFoundError("用户不存在")
        return user

    def _serialize_user(self, user: User) -> dict:
        home = next((p for p in user.paths if p.virtual_path == home_prefix(user.username)), None)
        return {
            "id": user.id,
            "username": user.username,
            "role": user.role,
            "permissions": dump_permissions(user.permissions),
            "isActive": user.is_active,
            "isAdmin": user.is_admin,
            "homePath": home_prefix(user.username) if home else None,
            "customPath": home.real_path if home else None,
            "paths": [{"virtualPath": p.virtual_path, "realPath": p.real_path} for p in user.paths],
            "createTime": isoformat(user.create_time),
        }


user_service = UserService()
