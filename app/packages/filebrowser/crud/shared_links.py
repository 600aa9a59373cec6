"""分享链接 CRUD。"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.packages.filebrowser.crud.base import CRUDBase
from app.packages.filebrowser.models.shared_link import SharedLink


class CRUDSharedLink(CRUDBase[SharedLink]):
    def get_by_link_id(self, db: Session, link_id: str) -> Optional[SharedLink]:
        return db.scalar(select(SharedLink).where(SharedLink.link_id == link_id))

    def list_by_user(self, db: Session, user_id: int) -> List[SharedLink]:
        return list(
            db.scalars(
                select(SharedLink).where(SharedLink.user_id == user_id).order_by(SharedLink.id.desc())
            )
        )

    def create_link(
        self,
        db: Session,
        *,
        link_id: str,
        user_id: int,
        file_paths: List[str],
        password_hash: str,
        expires_at: Optional[datetime],
        is_multi: bool = False,
    ) -> SharedLink:
        return self.create(
            db,
            {
                "link_id": link_id,
                "user_id": user_id,
                "file_paths": list(file_paths),
                "password_hash": password_hash,
                "expires_at": expires_at,
                "is_multi": is_multi,
            },
        )


shared_link_crud = CRUDSharedLink(SharedLink)
