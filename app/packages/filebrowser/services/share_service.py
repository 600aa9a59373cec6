"""分享服务：创建与管理分享链接，并以创建者身份对外提供只读访问。

链接只保存创建者视角下的虚拟路径，每次访问都经 ``path_resolver`` 以创建者
身份重新解析，映射或文件变化后链接随之失效。访问流程：

1. ``verify_password``：校验链接密码，签发短期访问令牌；
2. ``access``：凭令牌查看分享内容，文件夹附带一层子项；
3. ``download``：凭令牌下载单个文件，可以是分享文件夹内的文件。
"""

from __future__ import annotations

import mimetypes
import os
import stat as stat_module
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.enums import PermissionEnum
from app.packages.filebrowser.core.exceptions import (
    AppException,
    ForbiddenError,
    GoneError,
    NotFoundError,
    StorageIOError,
    UnauthorizedError,
)
from app.packages.filebrowser.core.guards import require_permission
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.core.security import (
    create_share_token,
    decode_share_token,
    get_password_hash,
    verify_password,
)
from app.packages.filebrowser.core.timezone import ensure_utc, isoformat, utc_now
from app.packages.filebrowser.crud.file_metadata import file_metadata_crud
from app.packages.filebrowser.crud.shared_links import shared_link_crud
from app.packages.filebrowser.models.shared_link import SharedLink
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.services.path_resolver import ResolvedPath, path_resolver
from app.packages.filebrowser.utils.path_utils import (
    extension_of,
    join_virtual,
    normalize_virtual_path,
    prefix_matches,
    strip_trailing_slash,
)


def _expiry_from_days(days: Optional[int]) -> Optional[datetime]:
    """正数天数换算为过期时间，空值或非正数表示永不过期。"""
    if not days or days <= 0:
        return None
    return utc_now() + timedelta(days=days)


def _is_expired(link: SharedLink, now: Optional[datetime] = None) -> bool:
    if link.expires_at is None:
        return False
    return ensure_utc(link.expires_at) < (now or utc_now())


def _display_name(link: SharedLink) -> str:
    first = os.path.basename(strip_trailing_slash(link.file_paths[0])) if link.file_paths else ""
    if link.is_multi and len(link.file_paths) > 1:
        return f"{first} 等 {len(link.file_paths)} 项"
    return first


def _serialize_link(link: SharedLink) -> Dict[str, Any]:
    return {
        "id": link.link_id,
        "fileName": _display_name(link),
        "filePath": link.file_paths[0] if link.file_paths else None,
        "filePaths": list(link.file_paths),
        "createdAt": isoformat(link.create_time),
        "expiresAt": isoformat(link.expires_at),
        "isExpired": _is_expired(link),
        "isMulti": bool(link.is_multi),
        "creatorName": link.owner.username if link.owner else None,
    }


class ShareService:
    # ----------------------------
    # 链接管理（需登录）
    # ----------------------------
    def create_link(
        self,
        db: Session,
        user: User,
        *,
        file_path: str,
        password: str,
        expiry_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        require_permission(user, PermissionEnum.SHARE)
        resolved = self._resolve_shareable(db, user, file_path)
        link = self._create(db, user, [resolved.virtual_path], password, expiry_days, is_multi=False)
        return {
            "linkId": link.link_id,
            "expiresAt": isoformat(link.expires_at),
            "filePath": resolved.virtual_path,
        }

    def create_multi_link(
        self,
        db: Session,
        user: User,
        *,
        file_paths: List[str],
        password: str,
        expiry_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        """无效路径会被跳过并在结果中列出；全部无效时创建失败。"""
        require_permission(user, PermissionEnum.SHARE)
        valid: List[str] = []
        skipped: List[Dict[str, str]] = []
        for raw in file_paths or []:
            try:
                resolved = self._resolve_shareable(db, user, raw)
            except AppException as exc:
                skipped.append({"path": raw, "error": exc.msg})
                continue
            if resolved.virtual_path not in valid:
                valid.append(resolved.virtual_path)
        if not valid:
            raise AppException("没有可分享的有效文件", data={"skipped": skipped})

        link = self._create(db, user, valid, password, expiry_days, is_multi=True)
        return {
            "linkId": link.link_id,
            "expiresAt": isoformat(link.expires_at),
            "fileCount": len(valid),
            "filePaths": valid,
            "skipped": skipped,
        }

    def list_links(self, db: Session, user: User) -> List[Dict[str, Any]]:
        return [_serialize_link(link) for link in shared_link_crud.list_by_user(db, user.id)]

    def update_link(
        self,
        db: Session,
        user: User,
        link_id: str,
        *,
        change_expiry: bool = False,
        expiry_days: Optional[int] = None,
        new_password: Optional[str] = None,
    ) -> Dict[str, Any]:
        """``change_expiry`` 为真时按 ``expiry_days`` 重新计算过期时间（非正数为永不过期）。"""
        link = self._get_owned(db, user, link_id)
        if change_expiry:
            link.expires_at = _expiry_from_days(expiry_days)
        if new_password:
            link.password_hash = get_password_hash(new_password)
        shared_link_crud.save(db, link)
        logger.info("share.update user=%s link=%s expiry_changed=%s", user.username, link_id, change_expiry)
        return _serialize_link(link)

    def delete_link(self, db: Session, user: User, link_id: str) -> Dict[str, Any]:
        link = self._get_owned(db, user, link_id)
        shared_link_crud.hard_delete(db, link)
        logger.info("share.delete user=%s link=%s", user.username, link_id)
        return {"linkId": link_id}

    # ----------------------------
    # 公开访问
    # ----------------------------
    def verify_password(self, db: Session, link_id: str, password: str) -> Dict[str, Any]:
        link = self._get_active(db, link_id)
        if not verify_password(password, link.password_hash):
            logger.info("share.verify_failed link=%s", link_id)
            raise UnauthorizedError("分享密码错误")
        return {
            "accessToken": create_share_token(link.link_id),
            "expiresIn": get_settings().share_token_expire_minutes * 60,
            "isMulti": bool(link.is_multi),
            "filePaths": list(link.file_paths),
        }

    def access(self, db: Session, access_token: str) -> Dict[str, Any]:
        link = self._link_from_token(db, access_token)
        owner = self._owner_of(link)
        files: List[Dict[str, Any]] = []
        for shared in link.file_paths:
            resolved = self._resolve_live(db, owner, shared)
            files.append(self._describe(db, resolved, with_children=True))
        return {
            "linkId": link.link_id,
            "isMulti": bool(link.is_multi),
            "expiresAt": isoformat(link.expires_at),
            "files": files,
        }

    def download(self, db: Session, access_token: str, *, path: Optional[str] = None) -> FileResponse:
        """下载分享范围内的单个文件；单项分享可省略 ``path``。"""
        link = self._link_from_token(db, access_token)
        owner = self._owner_of(link)
        target = path
        if not target:
            if len(link.file_paths) != 1:
                raise AppException("多文件分享请指定要下载的文件")
            target = link.file_paths[0]

        key = strip_trailing_slash(normalize_virtual_path(target))
        if not any(prefix_matches(normalize_virtual_path(shared), key) for shared in link.file_paths):
            raise ForbiddenError("该文件不在分享范围内")

        resolved = self._resolve_live(db, owner, target)
        if not os.path.isfile(resolved.physical_path):
            raise AppException("仅支持下载单个文件")
        media_type, _ = mimetypes.guess_type(resolved.physical_path)
        logger.info("share.download link=%s path=%s", link.link_id, resolved.virtual_path)
        return FileResponse(
            resolved.physical_path,
            media_type=media_type or "application/octet-stream",
            filename=os.path.basename(resolved.physical_path),
        )

    # ----------------------------
    # 内部工具
    # ----------------------------
    def _create(
        self,
        db: Session,
        user: User,
        paths: List[str],
        password: str,
        expiry_days: Optional[int],
        *,
        is_multi: bool,
    ) -> SharedLink:
        if not password:
            raise AppException("分享密码不能为空")
        link = shared_link_crud.create_link(
            db,
            link_id=str(uuid.uuid4()),
            user_id=user.id,
            file_paths=paths,
            password_hash=get_password_hash(password),
            expires_at=_expiry_from_days(expiry_days),
            is_multi=is_multi,
        )
        logger.info("share.create user=%s link=%s paths=%s", user.username, link.link_id, len(paths))
        return link

    @staticmethod
    def _resolve_shareable(db: Session, user: User, path: str) -> ResolvedPath:
        resolved = path_resolver.resolve(db, user, path, create_missing=False)
        if resolved.is_virtual_root:
            raise AppException("不能分享根目录")
        if not os.path.exists(resolved.physical_path):
            raise NotFoundError("文件或文件夹不存在")
        return resolved

    @staticmethod
    def _resolve_live(db: Session, owner: User, path: str) -> ResolvedPath:
        resolved = path_resolver.resolve(db, owner, path, create_missing=False)
        if resolved.is_virtual_root or not os.path.exists(resolved.physical_path):
            raise NotFoundError("分享的文件已不存在")
        return resolved

    @staticmethod
    def _get_owned(db: Session, user: User, link_id: str) -> SharedLink:
        link = shared_link_crud.get_by_link_id(db, link_id)
        if link is None:
            raise NotFoundError("分享链接不存在")
        if link.user_id != user.id:
            raise ForbiddenError("无权管理该分享链接")
        return link

    @staticmethod
    def _get_active(db: Session, link_id: str) -> SharedLink:
        link = shared_link_crud.get_by_link_id(db, link_id)
        if link is None:
            raise NotFoundError("分享链接不存在")
        if _is_expired(link):
            raise GoneError("分享链接已过期")
        return link

    def _link_from_token(self, db: Session, access_token: str) -> SharedLink:
        link_id = decode_share_token(access_token)
        if link_id is None:
            raise UnauthorizedError("访问令牌无效或已过期")
        return self._get_active(db, link_id)

    @staticmethod
    def _owner_of(link: SharedLink) -> User:
        owner = link.owner
        # 创建者被停用后其分享一并失效
        if owner is None or not owner.is_active:
            raise NotFoundError("分享链接不存在")
        return owner

    def _describe(self, db: Session, resolved: ResolvedPath, *, with_children: bool) -> Dict[str, Any]:
        physical = resolved.physical_path
        st = os.stat(physical)
        is_dir = stat_module.S_ISDIR(st.st_mode)
        name = os.path.basename(physical.rstrip(os.sep)) or physical
        size = int(st.st_size)
        if is_dir:
            record = file_metadata_crud.get_by_path(db, physical)
            size = record.size if record else 0
        info: Dict[str, Any] = {
            "name": name,
            "path": resolved.virtual_path,
            "type": "folder" if is_dir else "file",
            "extension": None if is_dir else extension_of(name),
            "size": size,
            "modified": isoformat(datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)),
        }
        if is_dir and with_children:
            info["children"] = self._describe_children(db, resolved)
        return info

    def _describe_children(self, db: Session, resolved: ResolvedPath) -> List[Dict[str, Any]]:
        try:
            names = sorted(os.listdir(resolved.physical_path))
        except OSError as exc:
            logger.error("share.listdir_failed path=%s error=%s", resolved.physical_path, exc)
            raise StorageIOError("无法读取目录内容") from exc
        children: List[Dict[str, Any]] = []
        for name in names:
            child = ResolvedPath(
                join_virtual(resolved.virtual_path, name),
                os.path.join(resolved.physical_path, name),
                resolved.strategy,
                owner=resolved.owner,
            )
            try:
                children.append(self._describe(db, child, with_children=False))
            except OSError as exc:
                logger.warning("share.stat_failed path=%s error=%s", child.physical_path, exc)
        return children


share_service = ShareService()
