"""认证相关路由定义。"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.filebrowser.api.v1.schemas.auth import LoginRequest, LogoutResponse, MeResponse, TokenResponse
from app.packages.filebrowser.core.constants import HTTP_STATUS_OK
from app.packages.filebrowser.core.dependencies import get_current_active_user, get_db, get_session_id
from app.packages.filebrowser.core.responses import create_response
from app.packages.filebrowser.core.session import delete_session
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """校验凭证并签发访问令牌。"""
    return auth_service.login(db, username=payload.username, password=payload.password)


@router.get("/me", response_model=MeResponse)
def me(db: Session = Depends(get_db), current_user: User = Depends(get_current_active_user)) -> MeResponse:
    return auth_service.me(db, current_user)


@router.post("/logout", response_model=LogoutResponse)
def logout(session_id: Optional[str] = Depends(get_session_id)) -> LogoutResponse:
    """退出登录，前端需删除本地缓存的令牌。"""
    if session_id:
        delete_session(session_id)
    return create_response("退出登录成功", None, HTTP_STATUS_OK)
