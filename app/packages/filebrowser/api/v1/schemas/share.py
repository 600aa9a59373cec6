"""分享链接的请求/响应模型。"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from app.packages.filebrowser.api.v1.schemas.common import ResponseEnvelope


class ShareCreateBody(BaseModel):
    filePath: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, max_length=128)
    # 为空或非正数表示永不过期
    expiryDays: Optional[int] = None


class ShareMultiCreateBody(BaseModel):
    filePaths: list[str] = Field(..., min_length=1)
    password: str = Field(..., min_length=1, max_length=128)
    expiryDays: Optional[int] = None


class ShareUpdateBody(BaseModel):
    expiryDays: Optional[int] = None
    newPassword: Optional[str] = Field(default=None, min_length=1, max_length=128)


class ShareVerifyBody(BaseModel):
    password: str = Field(..., min_length=1)


class SharedLinkItem(BaseModel):
    id: str
    fileName: str
    filePath: Optional[str] = None
    filePaths: list[str]
    createdAt: Optional[str] = None
    expiresAt: Optional[str] = None
    isExpired: bool
    isMulti: bool
    creatorName: Optional[str] = None


SharedLinkResponse = ResponseEnvelope[SharedLinkItem]
SharedLinkListResponse = ResponseEnvelope[list[SharedLinkItem]]
ShareMutationResponse = ResponseEnvelope[Any]
