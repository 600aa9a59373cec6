"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from collections.abc import Generator
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.constants import ACCESS_TOKEN_TYPE
from app.packages.filebrowser.core.guards import is_admin_user
from app.packages.filebrowser.core.security import (
    create_access_token,
    decode_token,
    store_refreshed_token,
)
from app.packages.filebrowser.core.session import touch_session
from app.packages.filebrowser.crud.users import user_crud
from app.packages.filebrowser.db import session as db_session
from app.packages.filebrowser.models.user import User

security_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> User:
    """解析 ``Authorization`` 头部并返回当前认证用户，不存在或非法时抛出 401。"""
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="缺少认证信息")

    if credentials.scheme.lower() != ACCESS_TOKEN_TYPE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="认证类型无效")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token 无效或已过期")

    user_id = payload.get("user_id")
    session_id = payload.get("sid")
    if user_id is None or session_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token 无效")

    user = user_crud.get(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="用户不存在")

    ttl_seconds = max(get_settings().access_token_expire_minutes, 1) * 60
    if not touch_session(session_id, user.id, ttl_seconds):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token 无效或已过期")

    # 滑动会话：每次请求签发新令牌，响应阶段通过 body.meta 与响应头返回
    store_refreshed_token(create_access_token({"user_id": user.id, "username": user.username, "sid": session_id}))
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """确保已认证用户仍处于激活状态，否则拒绝访问。"""
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="用户未激活")
    return current_user


def require_admin(current_user: User = Depends(get_current_active_user)) -> User:
    """仅允许管理员角色访问。"""
    if not is_admin_user(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="需要管理员权限")
    return current_user


def get_session_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    _: User = Depends(get_current_active_user),
) -> Optional[str]:
    """返回当前令牌绑定的会话 ID（令牌已由 ``get_current_active_user`` 校验）。"""
    payload = decode_token(credentials.credentials) if credentials else None
    return payload.get("sid") if payload else None
