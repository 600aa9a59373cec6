"""用户 CRUD：集中管理用户相关的数据操作。"""

from typing import Iterable, List, Optional, Union

from sqlalchemy.orm import Session, selectinload

from app.packages.filebrowser.core.enums import PermissionEnum, RoleEnum
from app.packages.filebrowser.crud.base import CRUDBase
from app.packages.filebrowser.models.user import User


class CRUDUser(CRUDBase[User]):
    """封装常用的用户查询方法，供业务层复用。"""

    def get_by_username(self, db: Session, username: str) -> Optional[User]:
        """根据唯一用户名获取用户实例。"""
        return self.query(db).filter(User.username == username).first()

    def get_by_id_or_username(self, db: Session, user_id_or_name: Union[int, str, None]) -> Optional[User]:
        """数字（或数字字符串）按 ID 查找，其余按用户名查找。"""
        if user_id_or_name is None or user_id_or_name == "":
            return None
        if isinstance(user_id_or_name, int):
            return self.get(db, user_id_or_name)
        token = str(user_id_or_name).strip()
        if token.isdigit():
            return self.get(db, int(token))
        return self.get_by_username(db, token)

    def list_all(self, db: Session) -> List[User]:
        return (
            self.query(db)
            .options(selectinload(User.paths))
            .order_by(User.id.asc())
            .all()
        )

    def create_user(
        self,
        db: Session,
        *,
        username: str,
        hashed_password: str,
        role: str = RoleEnum.USER.value,
        permissions: Iterable[PermissionEnum] = (),
        auto_commit: bool = True,
    ) -> User:
        user = User(username=username, hashed_password=hashed_password, role=role, is_active=True)
        user.permissions = permissions
        return self.save(db, user, auto_commit=auto_commit)


user_crud = CRUDUser(User)
