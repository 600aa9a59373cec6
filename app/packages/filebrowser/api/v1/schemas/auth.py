"""认证相关的请求与响应模型。"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.packages.filebrowser.api.v1.schemas.common import ResponseEnvelope


class LoginRequest(BaseModel):
    """登录请求的字段校验规则。"""

    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=128)


class IdentityData(BaseModel):
    id: int
    username: str
    role: str
    permissions: list[str]
    homePath: Optional[str] = None


class TokenResponseData(BaseModel):
    """登录成功后签发的令牌信息。"""

    access_token: str
    token_type: Literal["bearer"]
    user: IdentityData


TokenResponse = ResponseEnvelope[TokenResponseData]
MeResponse = ResponseEnvelope[IdentityData]
LogoutResponse = ResponseEnvelope[None]
