"""枚举定义：约束角色、权限以及列表查询参数的可选值。"""

from enum import Enum


class RoleEnum(str, Enum):
    ADMIN = "admin"
    USER = "user"


class PermissionEnum(str, Enum):
    """文件操作权限。"""

    READ = "read"
    WRITE = "write"
    SHARE = "share"
    RENAME = "rename"
    DELETE = "delete"
    MOVE = "move"


class SortFieldEnum(str, Enum):
    NAME = "name"
    MODIFIED = "modified"
    SIZE = "size"


class SortOrderEnum(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FileTypeFilterEnum(str, Enum):
    ALL = "all"
    FOLDER = "folder"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


class DateRangeEnum(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class SizeRangeEnum(str, Enum):
    ALL = "all"
    TINY = "tiny"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"
