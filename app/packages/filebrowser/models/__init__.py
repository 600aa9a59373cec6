"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.filebrowser.models.file_metadata import FileMetadata
from app.packages.filebrowser.models.shared_link import SharedLink
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.models.user_path import UserPath

__all__ = [
    "FileMetadata",
    "SharedLink",
    "User",
    "UserPath",
]
