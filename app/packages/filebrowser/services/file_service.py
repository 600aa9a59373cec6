"""文件服务：目录列表与各类文件/文件夹变更操作。

所有虚拟路径都经 ``path_resolver`` 解析为物理路径。每次变更成功后立即调用
索引器刷新受影响的缓存记录及其祖先目录大小，列表中缺失或过期的缓存记录则交给
``on_stale`` 回调异步刷新，不阻塞当前请求。
"""

from __future__ import annotations

import calendar
import math
import mimetypes
import os
import shutil
import stat as stat_module
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.constants import FILE_TYPE_EXTENSIONS, SIZE_RANGES
from app.packages.filebrowser.core.enums import (
    DateRangeEnum,
    FileTypeFilterEnum,
    PermissionEnum,
    SizeRangeEnum,
    SortFieldEnum,
    SortOrderEnum,
)
from app.packages.filebrowser.core.exceptions import (
    AppException,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageIOError,
)
from app.packages.filebrowser.core.guards import require_permission
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.core.timezone import isoformat, now as local_now
from app.packages.filebrowser.crud.file_metadata import file_metadata_crud
from app.packages.filebrowser.crud.path_registry import home_prefix, path_registry
from app.packages.filebrowser.crud.users import user_crud
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.services.indexer import file_indexer
from app.packages.filebrowser.services.path_resolver import ResolvedPath, path_resolver
from app.packages.filebrowser.utils.path_utils import extension_of, join_virtual, virtual_parent

OnStale = Callable[[str, str], Any]

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _as_directory(path: Optional[str]) -> str:
    """给虚拟路径补上结尾 '/'，使解析器按目录形态处理。"""
    raw = (path or "/").strip() or "/"
    return raw if raw.endswith(("/", "\\")) else raw + "/"


def _safe_name(name: Optional[str]) -> str:
    candidate = (name or "").strip()
    if not candidate:
        raise AppException("名称不能为空")
    if "/" in candidate or "\\" in candidate or candidate in {".", ".."}:
        raise AppException("名称不能包含路径分隔符")
    return candidate


def _months_ago(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def date_range_start(date_range: DateRangeEnum, current: datetime) -> Optional[datetime]:
    """返回日期筛选的下界；``all`` 返回 ``None``。"""
    if date_range == DateRangeEnum.TODAY:
        return current.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_range == DateRangeEnum.WEEK:
        return current - timedelta(days=7)
    if date_range == DateRangeEnum.MONTH:
        return _months_ago(current, 1)
    if date_range == DateRangeEnum.YEAR:
        return _months_ago(current, 12)
    return None


def filter_entries(
    entries: List[Dict[str, Any]],
    *,
    search: Optional[str] = None,
    file_type: FileTypeFilterEnum = FileTypeFilterEnum.ALL,
    extension: Optional[str] = None,
    date_range: DateRangeEnum = DateRangeEnum.ALL,
    size_range: SizeRangeEnum = SizeRangeEnum.ALL,
    current: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    result = entries
    keyword = (search or "").strip().lower()
    if keyword:
        result = [e for e in result if keyword in e["name"].lower()]

    if file_type == FileTypeFilterEnum.FOLDER:
        result = [e for e in result if e["type"] == "folder"]
    elif file_type != FileTypeFilterEnum.ALL:
        allowed = FILE_TYPE_EXTENSIONS[file_type.value]
        result = [e for e in result if e["type"] == "file" and e["extension"] in allowed]

    wanted_ext = (extension or "").strip().lstrip(".").lower()
    if wanted_ext:
        result = [e for e in result if e["type"] == "file" and e["extension"] == wanted_ext]

    threshold = date_range_start(date_range, current or local_now())
    if threshold is not None:
        result = [e for e in result if e["modified"] is not None and e["modified"] >= threshold]

    if size_range != SizeRangeEnum.ALL:
        low, high = SIZE_RANGES[size_range.value]
        # 按大小筛选时不返回文件夹
        result = [
            e for e in result if e["type"] == "file" and e["size"] >= low and (high is None or e["size"] < high)
        ]
    return result


def sort_entries(
    entries: List[Dict[str, Any]],
    sort_by: SortFieldEnum = SortFieldEnum.NAME,
    sort_order: SortOrderEnum = SortOrderEnum.ASC,
) -> List[Dict[str, Any]]:
    """文件夹始终排在文件之前，组内按指定字段排序。"""
    reverse = sort_order == SortOrderEnum.DESC

    def _key(entry: Dict[str, Any]):
        if sort_by == SortFieldEnum.MODIFIED:
            return (entry["modified"] or _EPOCH, entry["name"].lower())
        if sort_by == SortFieldEnum.SIZE:
            return (entry["size"], entry["name"].lower())
        return (entry["name"].lower(), entry["name"])

    folders = sorted((e for e in entries if e["type"] == "folder"), key=_key, reverse=reverse)
    files = sorted((e for e in entries if e["type"] != "folder"), key=_key, reverse=reverse)
    return folders + files


def _serialize(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": entry["name"],
        "type": entry["type"],
        "extension": entry["extension"],
        "size": entry["size"],
        "modified": isoformat(entry["modified"]),
        "path": entry["path"],
        "lastIndexed": isoformat(entry["last_indexed"]),
    }


class FileService:
    # ----------------------------
    # 查询
    # ----------------------------
    def list_directory(
        self,
        db: Session,
        user: User,
        *,
        path: Optional[str] = "/",
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: SortFieldEnum = SortFieldEnum.NAME,
        sort_order: SortOrderEnum = SortOrderEnum.ASC,
        search: Optional[str] = None,
        file_type: FileTypeFilterEnum = FileTypeFilterEnum.ALL,
        extension: Optional[str] = None,
        date_range: DateRangeEnum = DateRangeEnum.ALL,
        size_range: SizeRangeEnum = SizeRangeEnum.ALL,
        on_stale: Optional[OnStale] = None,
    ) -> Dict[str, Any]:
        require_permission(user, PermissionEnum.READ)
        settings = get_settings()
        resolved = path_resolver.resolve(db, user, _as_directory(path))

        if resolved.is_virtual_root:
            entries = self._list_user_folders(db, on_stale)
        else:
            entries = self._list_physical(db, resolved, on_stale)

        entries = filter_entries(
            entries,
            search=search,
            file_type=file_type,
            extension=extension,
            date_range=date_range,
            size_range=size_range,
        )
        entries = sort_entries(entries, sort_by, sort_order)

        page = max(int(page or 1), 1)
        limit = min(max(int(limit or settings.files_page_size), 1), settings.files_max_page_size)
        total = len(entries)
        start = (page - 1) * limit
        return {
            "path": resolved.virtual_path,
            "files": [_serialize(e) for e in entries[start : start + limit]],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit) if total else 0,
            },
        }

    def _list_physical(self, db: Session, resolved: ResolvedPath, on_stale: Optional[OnStale]) -> List[Dict[str, Any]]:
        directory = resolved.physical_path
        if not os.path.exists(directory):
            raise NotFoundError("路径不存在")
        if not os.path.isdir(directory):
            raise AppException("目标不是文件夹")
        try:
            names = sorted(os.listdir(directory))
        except OSError as exc:
            logger.error("files.listdir_failed path=%s error=%s", directory, exc)
            raise StorageIOError("无法读取目录内容") from exc

        children = {name: os.path.join(directory, name) for name in names}
        records = file_metadata_crud.get_many(db, children.values())
        entries: List[Dict[str, Any]] = []
        for name, child in children.items():
            try:
                st = os.stat(child)
            except OSError as exc:
                logger.warning("files.stat_failed path=%s error=%s", child, exc)
                continue
            is_dir = stat_module.S_ISDIR(st.st_mode)
            record = records.get(child)
            virtual = join_virtual(resolved.virtual_path, name)
            if on_stale is not None and file_indexer.is_stale(record):
                on_stale(child, virtual)
            entries.append(
                {
                    "name": name,
                    "type": "folder" if is_dir else "file",
                    "extension": None if is_dir else extension_of(name),
                    "size": (record.size if record else 0) if is_dir else int(st.st_size),
                    "modified": datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
                    "path": virtual,
                    "last_indexed": record.last_indexed if record else None,
                }
            )
        return entries

    def _list_user_folders(self, db: Session, on_stale: Optional[OnStale]) -> List[Dict[str, Any]]:
        """管理员的虚拟根：每个拥有主目录映射的用户显示为一个文件夹。"""
        homes: Dict[str, str] = {}
        for account in user_crud.list_all(db):
            for mapping in account.paths:
                if mapping.virtual_path == home_prefix(account.username):
                    homes[account.username] = mapping.real_path
        records = file_metadata_crud.get_many(db, homes.values())

        entries: List[Dict[str, Any]] = []
        for username, real_path in homes.items():
            record = records.get(real_path)
            virtual = home_prefix(username)
            modified = record.last_modified if record else None
            if modified is None and os.path.isdir(real_path):
                modified = datetime.fromtimestamp(os.stat(real_path).st_mtime, tz=timezone.utc)
            if on_stale is not None and os.path.isdir(real_path) and file_indexer.is_stale(record):
                on_stale(real_path, virtual)
            entries.append(
                {
                    "name": username,
                    "type": "folder",
                    "extension": None,
                    "size": record.size if record else 0,
                    "modified": modified,
                    "path": virtual,
                    "last_indexed": record.last_indexed if record else None,
                }
            )
        return entries

    # ----------------------------
    # 目录与文件变更
    # ----------------------------
    def mkdir(self, db: Session, user: User, *, path: str, name: str) -> Dict[str, Any]:
        require_permission(user, PermissionEnum.WRITE)
        safe = _safe_name(name)
        parent = self._resolve_directory(db, user, path)
        target = os.path.join(parent.physical_path, safe)
        if os.path.lexists(target):
            raise ConflictError("同名文件或文件夹已存在")
        try:
            os.mkdir(target)
        except OSError as exc:
            raise StorageIOError(f"创建文件夹失败: {exc.strerror or exc}") from exc
        virtual = join_virtual(parent.virtual_path, safe)
        logger.info("files.mkdir user=%s path=%s", user.username, virtual)
        self._refresh(db, target, virtual)
        return {"name": safe, "path": virtual}

    def touch(self, db: Session, user: User, *, path: str, name: str) -> Dict[str, Any]:
        require_permission(user, PermissionEnum.WRITE)
        safe = _safe_name(name)
        parent = self._resolve_directory(db, user, path)
        target = os.path.join(parent.physical_path, safe)
        if os.path.lexists(target):
            raise ConflictError("同名文件或文件夹已存在")
        try:
            with open(target, "xb"):
                pass
        except FileExistsError as exc:
            raise ConflictError("同名文件或文件夹已存在") from exc
        except OSError as exc:
            raise StorageIOError(f"创建文件失败: {exc.strerror or exc}") from exc
        virtual = join_virtual(parent.virtual_path, safe)
        logger.info("files.touch user=%s path=%s", user.username, virtual)
        self._refresh(db, target, virtual)
        return {"name": safe, "path": virtual}

    def rename(self, db: Session, user: User, *, file_path: str, new_name: str) -> Dict[str, Any]:
        require_permission(user, PermissionEnum.RENAME)
        safe = _safe_name(new_name)
        source = self._resolve_existing(db, user, file_path)
        destination = os.path.join(os.path.dirname(source.physical_path), safe)
        if os.path.lexists(destination):
            raise ConflictError("同名文件或文件夹已存在")
        try:
            os.rename(source.physical_path, destination)
        except OSError as exc:
            raise StorageIOError(f"重命名失败: {exc.strerror or exc}") from exc

        new_virtual = join_virtual(virtual_parent(source.virtual_path), safe)
        logger.info("files.rename user=%s from=%s to=%s", user.username, source.virtual_path, new_virtual)
        self._forget(db, source.physical_path)
        self._refresh(db, destination, new_virtual)
        return {"oldPath": source.virtual_path, "newPath": new_virtual}

    def move(self, db: Session, user: User, *, file_paths: List[str], destination_path: str) -> Dict[str, Any]:
        """逐项移动；全部失败时抛出第一项的错误，否则返回逐项结果。"""
        require_permission(user, PermissionEnum.MOVE)
        if not file_paths:
            raise AppException("请选择要移动的文件或文件夹")
        destination = self._resolve_directory(db, user, destination_path)

        results: List[Dict[str, Any]] = []
        failures: List[AppException] = []
        for raw in file_paths:
            try:
                new_virtual = self._move_one(db, user, raw, destination)
                results.append({"path": raw, "status": "success", "newPath": new_virtual})
            except AppException as exc:
                failures.append(exc)
                results.append({"path": raw, "status": "failure", "code": exc.status_code, "message": exc.msg})
        if failures and len(failures) == len(file_paths):
            raise failures[0]
        return {"moved": len(file_paths) - len(failures), "results": results}

    def _move_one(self, db: Session, user: User, raw: str, destination: ResolvedPath) -> str:
        source = self._resolve_existing(db, user, raw)
        name = os.path.basename(source.physical_path.rstrip(os.sep))
        target = os.path.join(destination.physical_path, name)
        if os.path.lexists(target):
            raise ConflictError(f"目标已存在: {name}")
        src_key = os.path.normpath(source.physical_path)
        if os.path.normpath(destination.physical_path).startswith(src_key + os.sep) or target == src_key:
            raise AppException("不能将文件夹移动到其自身或子目录中")
        try:
            shutil.move(source.physical_path, target)
        except OSError as exc:
            raise StorageIOError(f"移动失败: {exc.strerror or exc}") from exc
        new_virtual = join_virtual(destination.virtual_path, name)
        logger.info("files.move user=%s from=%s to=%s", user.username, source.virtual_path, new_virtual)
        self._forget(db, source.physical_path)
        self._refresh(db, target, new_virtual)
        return new_virtual

    def delete(self, db: Session, user: User, *, file_paths: List[str]) -> Dict[str, Any]:
        require_permission(user, PermissionEnum.DELETE)
        if not file_paths:
            raise AppException("请选择要删除的文件或文件夹")
        deleted: List[str] = []
        errors: List[Dict[str, Any]] = []
        for raw in file_paths:
            try:
                source = self._resolve_existing(db, user, raw)
                self._remove(source.physical_path)
            except AppException as exc:
                errors.append({"path": raw, "code": exc.status_code, "message": exc.msg})
                continue
            logger.info("files.delete user=%s path=%s", user.username, source.virtual_path)
            self._forget(db, source.physical_path)
            deleted.append(source.virtual_path)
        return {"deleted": deleted, "errors": errors}

    @staticmethod
    def _remove(physical_path: str) -> None:
        try:
            if os.path.isdir(physical_path) and not os.path.islink(physical_path):
                shutil.rmtree(physical_path)
            else:
                os.remove(physical_path)
        except OSError as exc:
            raise StorageIOError(f"删除失败: {exc.strerror or exc}") from exc

    # ----------------------------
    # 上传/下载
    # ----------------------------
    async def upload(self, db: Session, user: User, *, path: Optional[str], files: List[UploadFile]) -> List[dict]:
        require_permission(user, PermissionEnum.WRITE)
        target_dir = self._resolve_directory(db, user, path)

        results: List[dict] = []
        for up in files:
            safe_name = os.path.basename((up.filename or "").replace("\\", "/"))
            if not safe_name or safe_name in {".", ".."}:
                results.append({"name": up.filename, "status": "failure", "message": "上传失败：文件名无效"})
                continue
            dst = os.path.join(target_dir.physical_path, safe_name)
            if os.path.lexists(dst):
                results.append({"name": safe_name, "status": "failure", "message": "上传失败：文件名已存在"})
                continue
            content = await up.read()
            try:
                with open(dst, "xb") as fh:
                    fh.write(content)
            except OSError as exc:
                logger.exception("files.upload_failed path=%s", dst)
                results.append({"name": safe_name, "status": "failure", "message": f"上传失败：{exc.strerror or exc}"})
                continue
            virtual = join_virtual(target_dir.virtual_path, safe_name)
            self._refresh(db, dst, virtual)
            results.append({"name": safe_name, "status": "success", "path": virtual, "size": len(content)})
        logger.info(
            "files.upload user=%s dir=%s ok=%s total=%s",
            user.username,
            target_dir.virtual_path,
            sum(1 for r in results if r["status"] == "success"),
            len(results),
        )
        return results

    def download(self, db: Session, user: User, *, paths: List[str]) -> FileResponse:
        require_permission(user, PermissionEnum.READ)
        if len(paths or []) != 1:
            raise AppException("仅支持下载单个文件")
        source = self._resolve_existing(db, user, paths[0], protect_roots=False)
        if not os.path.isfile(source.physical_path):
            raise AppException("仅支持下载单个文件")
        media_type, _ = mimetypes.guess_type(source.physical_path)
        return FileResponse(
            source.physical_path,
            media_type=media_type or "application/octet-stream",
            filename=os.path.basename(source.physical_path),
        )

    # ----------------------------
    # 内部工具
    # ----------------------------
    def _resolve_directory(self, db: Session, user: User, path: Optional[str]) -> ResolvedPath:
        resolved = path_resolver.resolve(db, user, _as_directory(path))
        if resolved.is_virtual_root:
            raise AppException("不能在根目录下直接操作，请先进入用户目录")
        if not os.path.isdir(resolved.physical_path):
            raise AppException("目标路径必须为文件夹")
        return resolved

    def _resolve_existing(
        self,
        db: Session,
        user: User,
        path: str,
        *,
        protect_roots: bool = True,
    ) -> ResolvedPath:
        resolved = path_resolver.resolve(db, user, path, create_missing=False)
        if resolved.is_virtual_root:
            raise AppException("不能对根目录执行该操作")
        if not os.path.lexists(resolved.physical_path):
            raise NotFoundError("文件或文件夹不存在")
        if protect_roots and path_registry.is_mapped_root(db, resolved.physical_path):
            raise ForbiddenError("不能修改已映射的根目录")
        return resolved

    @staticmethod
    def _refresh(db: Session, physical_path: str, virtual_path: str) -> None:
        try:
            file_indexer.update_file_metadata(db, physical_path, virtual_path)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("files.refresh_failed path=%s", physical_path)

    @staticmethod
    def _forget(db: Session, physical_path: str) -> None:
        try:
            file_indexer.delete_file_metadata(db, physical_path)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("files.forget_failed path=%s", physical_path)


file_service = FileService()
