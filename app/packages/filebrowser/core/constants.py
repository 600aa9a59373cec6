"""常量定义：集中维护状态码、角色名与文件分类等固定取值。"""

HTTP_STATUS_OK = 200
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_CONFLICT = 409
HTTP_STATUS_INTERNAL_SERVER_ERROR = 500

ACCESS_TOKEN_TYPE = "bearer"

# 虚拟根目录的别名：管理员访问时展示全部用户
VIRTUAL_ROOT_PATHS = ("/", "/all")

# 与虚拟根别名或路径片段冲突的用户名
RESERVED_USERNAMES = frozenset({"all", ".", ".."})

# 文件类型分组（按扩展名，小写，不含点号）
FILE_TYPE_EXTENSIONS = {
    "image": frozenset({"jpg", "jpeg", "png", "gif", "bmp", "webp"}),
    "video": frozenset({"mp4", "avi", "mkv", "mov", "wmv"}),
    "audio": frozenset({"mp3", "wav", "flac", "ogg"}),
    "document": frozenset({"txt", "doc", "docx", "pdf"}),
}

KB = 1024
MB = 1024 * KB

# 尺寸区间：[下界, 上界)，上界为 None 表示不设上限
SIZE_RANGES = {
    "tiny": (0, 10 * KB),
    "small": (10 * KB, MB),
    "medium": (MB, 10 * MB),
    "large": (10 * MB, 100 * MB),
    "xlarge": (100 * MB, None),
}
