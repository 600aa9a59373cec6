"""元数据缓存 CRUD：以物理路径为键的 upsert / 聚合 / 级联删除。"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from app.packages.filebrowser.crud.base import CRUDBase
from app.packages.filebrowser.models.file_metadata import FileMetadata


class CRUDFileMetadata(CRUDBase[FileMetadata]):
    def upsert(
        self,
        db: Session,
        *,
        path: str,
        name: str,
        is_directory: bool,
        size: int,
        modified_at: Optional[datetime],
        parent_path: Optional[str],
        virtual_path: Optional[str],
        indexed_at: datetime,
        auto_commit: bool = True,
    ) -> FileMetadata:
        """按主键替换或插入，并总是写入 ``last_indexed``。"""
        record = db.merge(
            FileMetadata(
                path=path,
                name=name,
                is_directory=is_directory,
                size=int(size),
                last_modified=modified_at,
                last_indexed=indexed_at,
                parent_path=parent_path,
                virtual_path=virtual_path,
            )
        )
        if auto_commit:
            db.commit()
        else:
            db.flush()
        return record

    def get_by_path(self, db: Session, path: str) -> Optional[FileMetadata]:
        return db.get(FileMetadata, path)

    def get_many(self, db: Session, paths: Iterable[str]) -> dict[str, FileMetadata]:
        keys = list(dict.fromkeys(paths))
        if not keys:
            return {}
        rows = db.scalars(select(FileMetadata).where(FileMetadata.path.in_(keys))).all()
        return {row.path: row for row in rows}

    def sum_child_sizes(self, db: Session, parent_path: str) -> int:
        """直接子项 size 之和；只统计已被索引过的子项。"""
        total = db.scalar(
            select(func.coalesce(func.sum(FileMetadata.size), 0)).where(FileMetadata.parent_path == parent_path)
        )
        return int(total or 0)

    def list_child_names(self, db: Session, parent_path: str) -> dict[str, str]:
        """直接子项的 ``name -> path`` 映射。"""
        rows = db.execute(
            select(FileMetadata.name, FileMetadata.path).where(FileMetadata.parent_path == parent_path)
        ).all()
        return {name: path for name, path in rows}

    def update_size(self, db: Session, path: str, size: int, *, indexed_at: datetime) -> bool:
        record = self.get_by_path(db, path)
        if record is None:
            return False
        record.size = int(size)
        record.last_indexed = indexed_at
        db.commit()
        return True

    def delete_subtree(self, db: Session, path: str) -> int:
        """删除记录本身以及所有以 ``path + 分隔符`` 开头的记录。"""
        prefix = path.rstrip(os.sep) + os.sep
        result = db.execute(
            delete(FileMetadata)
            .where(or_(FileMetadata.path == path, FileMetadata.path.startswith(prefix, autoescape=True)))
        )
        db.commit()
        return result.rowcount or 0

    def sum_file_sizes_under_virtual(self, db: Session, virtual_prefix: str) -> int:
        """虚拟路径位于 ``virtual_prefix`` 之下的文件大小总和（不含目录行，避免重复计算）。"""
        key = virtual_prefix.rstrip("/")
        total = db.scalar(
            select(func.coalesce(func.sum(FileMetadata.size), 0)).where(
                FileMetadata.is_directory.is_(False),
                or_(
                    FileMetadata.virtual_path == key,
                    FileMetadata.virtual_path.startswith(key + "/", autoescape=True),
                ),
            )
        )
        return int(total or 0)


file_metadata_crud = CRUDFileMetadata(FileMetadata)
