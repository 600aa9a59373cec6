"""用户模型：描述系统中的账号、角色与文件操作权限。"""

from typing import Any, Iterable, List

from sqlalchemy import JSON, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.packages.filebrowser.core.enums import PermissionEnum, RoleEnum
from app.packages.filebrowser.core.permissions import PermissionSet, dump_permissions, parse_permissions
from app.packages.filebrowser.models.base import Base, TimestampMixin


class User(TimestampMixin, Base):
    """用户实体，一个用户拥有若干虚拟路径映射。"""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default=RoleEnum.USER.value, index=True)
    # 原始 JSON 列；业务代码只通过 ``permissions`` 访问枚举集合
    permissions_raw: Mapped[List[Any]] = mapped_column("permissions", JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    paths: Mapped[List["UserPath"]] = relationship(
        "UserPath",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserPath.id",
    )
    shared_links: Mapped[List["SharedLink"]] = relationship(
        "SharedLink",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    @property
    def permissions(self) -> PermissionSet:
        return parse_permissions(self.permissions_raw, strict=False)

    @permissions.setter
    def permissions(self, value: Iterable[PermissionEnum]) -> None:
        self.permissions_raw = dump_permissions(value)

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.ADMIN.value
