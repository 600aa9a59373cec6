"""用户管理相关的请求与响应模型。"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from app.packages.filebrowser.api.v1.schemas.common import ResponseEnvelope
from app.packages.filebrowser.core.constants import RESERVED_USERNAMES
from app.packages.filebrowser.core.enums import PermissionEnum, RoleEnum

# 用户名会作为虚拟路径的首段，不允许出现路径分隔符
USERNAME_PATTERN = r"^[A-Za-z0-9_.\-]+$"


class UserCreateRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)
    role: RoleEnum = RoleEnum.USER
    permissions: list[PermissionEnum] = Field(default_factory=list)
    canRename: bool = False
    canDelete: bool = False
    canMove: bool = False
    customPath: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def reject_reserved(cls, value: str) -> str:
        if value.lower() in RESERVED_USERNAMES:
            raise ValueError("用户名为系统保留名称")
        return value


class UserUpdateRequest(BaseModel):
    role: Optional[RoleEnum] = None
    permissions: Optional[list[PermissionEnum]] = None
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)
    customPath: Optional[str] = None
    isActive: Optional[bool] = None


class PasswordChangeRequest(BaseModel):
    password: str = Field(..., min_length=6, max_length=128)


class UserPathRequest(BaseModel):
    customPath: str = Field(..., min_length=1)


class UserPathItem(BaseModel):
    virtualPath: str
    realPath: str


class UserItem(BaseModel):
    id: int
    username: str
    role: str
    permissions: list[str]
    isActive: bool
    isAdmin: bool
    homePath: Optional[str] = None
    customPath: Optional[str] = None
    paths: list[UserPathItem] = Field(default_factory=list)
    createTime: Optional[str] = None


UserResponse = ResponseEnvelope[UserItem]
UserListResponse = ResponseEnvelope[list[UserItem]]
UserHomePathsResponse = ResponseEnvelope[dict[str, str]]
UserMutationResponse = ResponseEnvelope[Any]
