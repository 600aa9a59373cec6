"""文件元数据缓存模型。

存储规则：
- path：物理绝对路径，作为主键；
- size：文件为自身字节数，目录为上次索引时直接子项 size 之和；
- parent_path：父目录的物理路径，索引根为 NULL；
- last_indexed：缓存新鲜度标记，超过过期窗口即视为陈旧。
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.filebrowser.models.base import Base


class FileMetadata(Base):
    __tablename__ = "file_metadata"

    path: Mapped[str] = mapped_column(String(4096), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    is_directory: Mapped[bool] = mapped_column(Boolean, default=False)
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    last_modified: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_indexed: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    parent_path: Mapped[Optional[str]] = mapped_column(String(4096), nullable=True, index=True)
    virtual_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True, index=True)
