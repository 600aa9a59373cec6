"""Database bootstrapping utilities."""

from __future__ import annotations

import logging
import os

from sqlalchemy.orm import Session

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.enums import RoleEnum
from app.packages.filebrowser.core.permissions import ALL_PERMISSIONS
from app.packages.filebrowser.core.security import get_password_hash
from app.packages.filebrowser.crud.path_registry import home_prefix, path_registry
from app.packages.filebrowser.crud.users import user_crud
from app.packages.filebrowser.db import session as db_session
from app.packages.filebrowser.models import FileMetadata, SharedLink, User, UserPath  # noqa: F401 - ensure table creation
from app.packages.filebrowser.models.base import Base

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all database tables if they do not exist and seed the administrator."""
    Base.metadata.create_all(bind=db_session.engine)

    session = db_session.SessionLocal()
    try:
        _seed_admin(session)
        session.commit()
    except Exception:  # pragma: no cover - initialization failures should not crash gracefully
        session.rollback()
        logger.exception("Failed to seed default data during database initialization")
        raise
    finally:
        session.close()


def _seed_admin(db: Session) -> None:
    """Ensure the default administrator and its home mapping exist."""
    settings = get_settings()
    username = settings.default_admin_username
    admin = user_crud.get_by_username(db, username)
    if admin is None:
        admin = user_crud.create_user(
            db,
            username=username,
            hashed_password=get_password_hash(settings.default_admin_password),
            role=RoleEnum.ADMIN.value,
            permissions=ALL_PERMISSIONS,
            auto_commit=False,
        )
        logger.info("Seeded default administrator %s", username)
    elif admin.role != RoleEnum.ADMIN.value:
        admin.role = RoleEnum.ADMIN.value
        user_crud.save(db, admin, auto_commit=False)

    home_dir = str(settings.admin_home_path)
    os.makedirs(home_dir, exist_ok=True)
    if path_registry.get_home(db, username) is None:
        path_registry.set_path(db, username, home_prefix(username), home_dir, auto_commit=False)
