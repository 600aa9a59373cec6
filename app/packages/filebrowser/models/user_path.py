"""用户路径映射模型：``(用户, 虚拟前缀) -> 真实目录``。"""

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.packages.filebrowser.models.base import Base, TimestampMixin


class UserPath(TimestampMixin, Base):
    """每个 (user_id, virtual_path) 至多一条；用户删除时级联删除。"""

    __tablename__ = "user_paths"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    # 以 '/' 开头，如 "/alice"、"/alice/work"
    virtual_path: Mapped[str] = mapped_column(String(1024))
    # 操作系统原生的绝对路径
    real_path: Mapped[str] = mapped_column(String(4096))

    user: Mapped["User"] = relationship("User", back_populates="paths")

    __table_args__ = (
        UniqueConstraint("user_id", "virtual_path", name="uq_user_paths_user_virtual"),
    )
