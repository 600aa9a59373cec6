"""分享链接模型：按链接 ID 公开访问若干虚拟路径。"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.packages.filebrowser.models.base import Base, TimestampMixin


class SharedLink(TimestampMixin, Base):
    """一条分享链接；访问时以创建者身份重新解析路径。"""

    __tablename__ = "shared_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    link_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    # 创建者视角下的虚拟路径；单项分享只有一个元素
    file_paths: Mapped[List[str]] = mapped_column(JSON, default=list)
    password_hash: Mapped[str] = mapped_column(String(255))
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_multi: Mapped[bool] = mapped_column(Boolean, default=False)

    owner: Mapped["User"] = relationship("User", back_populates="shared_links")
