"""认证服务：封装登录与当前用户信息。"""

from sqlalchemy.orm import Session

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.constants import (
    ACCESS_TOKEN_TYPE,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_OK,
    HTTP_STATUS_UNAUTHORIZED,
)
from app.packages.filebrowser.core.exceptions import AppException
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.core.permissions import dump_permissions, effective_permissions
from app.packages.filebrowser.core.responses import create_response
from app.packages.filebrowser.core.security import create_access_token, store_refreshed_token, verify_password
from app.packages.filebrowser.core.session import create_session
from app.packages.filebrowser.crud.path_registry import path_registry
from app.packages.filebrowser.crud.users import user_crud
from app.packages.filebrowser.models.user import User


class AuthService:
    def login(self, db: Session, *, username: str, password: str) -> dict:
        """校验用户凭证，创建服务端会话并签发访问令牌。"""
        user = user_crud.get_by_username(db, username)
        if user is None or not verify_password(password, user.hashed_password):
            logger.warning("auth.login_failed username=%s", username)
            raise AppException(msg="用户名或密码错误", code=HTTP_STATUS_UNAUTHORIZED)
        if not user.is_active:
            raise AppException(msg="用户已停用", code=HTTP_STATUS_FORBIDDEN)

        ttl_seconds = max(get_settings().access_token_expire_minutes, 1) * 60
        session_id = create_session(user.id, ttl_seconds)
        access_token = create_access_token({"user_id": user.id, "username": user.username, "sid": session_id})
        store_refreshed_token(access_token)
        logger.info("auth.login user=%s", user.username)

        return create_response(
            "登录成功",
            {
                "access_token": access_token,
                "token_type": ACCESS_TOKEN_TYPE,
                "user": self.serialize_identity(db, user),
            },
            HTTP_STATUS_OK,
        )

    def serialize_identity(self, db: Session, user: User) -> dict:
        home = path_registry.get_home(db, user.username)
        return {
            "id": user.id,
            "username": user.username,
            "role": user.role,
            "permissions": dump_permissions(effective_permissions(user)),
            "homePath": f"/{user.username}" if home else None,
        }

    def me(self, db: Session, user: User) -> dict:
        return create_response("获取用户信息成功", self.serialize_identity(db, user), HTTP_STATUS_OK)


auth_service = AuthService()
