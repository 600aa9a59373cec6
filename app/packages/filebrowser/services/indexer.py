"""元数据索引服务：递归统计目录大小并写入元数据缓存。

- ``index_file_or_directory``：深度优先遍历，目录大小为子项之和，单个条目读取
  失败只记日志并按 0 计入，不影响兄弟条目；磁盘上已不存在的子项缓存会被清除；
- ``update_file_metadata``：重新索引单个路径，再沿祖先目录逐级用
  ``sum_child_sizes`` 回填大小，直到文件系统根；路径已消失时按删除处理；
- ``delete_file_metadata``：删除缓存子树后同样向上回填；
- ``index_all_root_paths``：对注册表中的每个真实根目录做一次全量索引。

缓存写入都是从实时文件系统重新计算的结果，并发写入时以最后一次为准。
"""

from __future__ import annotations

import os
import stat as stat_module
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.core.timezone import Clock, ensure_utc, utc_now
from app.packages.filebrowser.crud.file_metadata import file_metadata_crud
from app.packages.filebrowser.crud.path_registry import path_registry
from app.packages.filebrowser.db import session as db_session
from app.packages.filebrowser.models.file_metadata import FileMetadata
from app.packages.filebrowser.utils.path_utils import is_root_boundary, join_virtual, physical_parent


class FileIndexer:
    """文件索引器；时钟与 ``stat``/``listdir`` 可注入，便于测试。"""

    def __init__(
        self,
        *,
        clock: Clock = utc_now,
        stat: Callable[[str], os.stat_result] = os.stat,
        listdir: Callable[[str], list[str]] = os.listdir,
        stale_after: Optional[timedelta] = None,
    ) -> None:
        self._clock = clock
        self._stat = stat
        self._listdir = listdir
        self._stale_after = stale_after

    @property
    def stale_after(self) -> timedelta:
        if self._stale_after is not None:
            return self._stale_after
        return get_settings().metadata_stale_after

    # ------------------------------------------------------------------
    # 递归索引
    # ------------------------------------------------------------------

    def index_file_or_directory(
        self,
        db: Session,
        physical_path: str,
        virtual_path: str,
        parent_path: Optional[str] = None,
    ) -> int:
        """索引一个文件或目录并返回其总大小；读取失败时返回 0 且不写入记录。"""
        try:
            st = self._stat(physical_path)
        except OSError as exc:
            logger.warning("indexer.stat_failed path=%s error=%s", physical_path, exc)
            return 0

        is_dir = stat_module.S_ISDIR(st.st_mode)
        total = 0
        if not is_dir:
            total = int(st.st_size)
        elif os.path.islink(physical_path):
            # 不跟随目录符号链接，避免环路
            logger.debug("indexer.skip_symlink_dir path=%s", physical_path)
        else:
            try:
                names = sorted(self._listdir(physical_path))
            except OSError as exc:
                logger.warning("indexer.listdir_failed path=%s error=%s", physical_path, exc)
                names = []
            else:
                self._prune_missing_children(db, physical_path, names)
            for name in names:
                total += self.index_file_or_directory(
                    db,
                    os.path.join(physical_path, name),
                    join_virtual(virtual_path, name),
                    physical_path,
                )

        file_metadata_crud.upsert(
            db,
            path=physical_path,
            name=os.path.basename(physical_path.rstrip(os.sep)) or physical_path,
            is_directory=is_dir,
            size=total,
            modified_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            parent_path=parent_path,
            virtual_path=virtual_path,
            indexed_at=self._clock(),
        )
        return total

    def _prune_missing_children(self, db: Session, directory: str, names: list[str]) -> None:
        """删除磁盘上已不存在的子项缓存（连同其子树）。"""
        live = set(names)
        for name, path in file_metadata_crud.list_child_names(db, directory).items():
            if name not in live:
                removed = file_metadata_crud.delete_subtree(db, path)
                logger.debug("indexer.prune path=%s removed=%s", path, removed)

    # ------------------------------------------------------------------
    # 增量更新
    # ------------------------------------------------------------------

    def update_file_metadata(self, db: Session, physical_path: str, virtual_path: str) -> int:
        """重新索引单个路径，并向上回填所有祖先目录的大小。

        路径已不存在时按删除处理，清掉其缓存子树。
        """
        if not os.path.lexists(physical_path):
            self.delete_file_metadata(db, physical_path)
            return 0
        parent = physical_parent(physical_path)
        size = self.index_file_or_directory(db, physical_path, virtual_path, parent)
        if parent is not None:
            self._update_parent_directory_sizes(db, parent)
        logger.debug("indexer.update path=%s size=%s", physical_path, size)
        return size

    def delete_file_metadata(self, db: Session, physical_path: str) -> int:
        """删除路径及其子树的缓存记录，并向上回填祖先目录大小。"""
        removed = file_metadata_crud.delete_subtree(db, physical_path)
        parent = physical_parent(physical_path)
        if parent is not None:
            self._update_parent_directory_sizes(db, parent)
        logger.debug("indexer.delete path=%s removed=%s", physical_path, removed)
        return removed

    def _update_parent_directory_sizes(self, db: Session, directory: str) -> None:
        current = directory
        while not is_root_boundary(current):
            # 未被索引过的祖先没有记录，跳过即可
            if file_metadata_crud.get_by_path(db, current) is not None:
                file_metadata_crud.update_size(
                    db,
                    current,
                    file_metadata_crud.sum_child_sizes(db, current),
                    indexed_at=self._clock(),
                )
            current = os.path.dirname(current)

    # ------------------------------------------------------------------
    # 全量索引
    # ------------------------------------------------------------------

    def index_all_root_paths(self, db: Session) -> dict:
        """遍历注册表中的全部映射，对每个真实根目录做全量索引。

        真实路径位于另一个待索引根目录之内的映射会被跳过，避免同一子树被
        索引两次并把其 ``parent_path`` 改写为空。
        """
        mappings = path_registry.get_all(db)
        roots: list[str] = []
        total_size = 0
        for mapping in sorted(mappings, key=lambda m: (len(os.path.normpath(m.real_path)), m.id)):
            real = os.path.normpath(mapping.real_path)
            if any(real == root or real.startswith(root.rstrip(os.sep) + os.sep) for root in roots):
                logger.debug("indexer.skip_nested_root real=%s virtual=%s", real, mapping.virtual_path)
                continue
            logger.info("indexer.root real=%s virtual=%s", real, mapping.virtual_path)
            total_size += self.index_file_or_directory(db, real, mapping.virtual_path, None)
            roots.append(real)
        return {"roots": len(roots), "total_size": total_size}

    # ------------------------------------------------------------------
    # 新鲜度
    # ------------------------------------------------------------------

    def is_stale(self, record: Optional[FileMetadata], *, now: Optional[datetime] = None) -> bool:
        """记录缺失、从未索引或 ``last_indexed`` 早于过期窗口时视为陈旧。"""
        if record is None or record.last_indexed is None:
            return True
        current = ensure_utc(now or self._clock())
        return current - ensure_utc(record.last_indexed) > self.stale_after

    # ------------------------------------------------------------------
    # 独立会话入口（后台任务与调度器使用）
    # ------------------------------------------------------------------

    def refresh_in_background(self, physical_path: str, virtual_path: str) -> None:
        """供 ``BackgroundTasks`` 调用：失败只记录日志，不影响已返回的响应。"""
        db = db_session.SessionLocal()
        try:
            self.update_file_metadata(db, physical_path, virtual_path)
        except Exception:
            db.rollback()
            logger.exception("indexer.refresh_failed path=%s", physical_path)
        finally:
            db.close()

    def run_full_sweep(self) -> dict:
        db = db_session.SessionLocal()
        try:
            summary = self.index_all_root_paths(db)
            logger.info("indexer.sweep roots=%s total_size=%s", summary["roots"], summary["total_size"])
            return summary
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


file_indexer = FileIndexer()
