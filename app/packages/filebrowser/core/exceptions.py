"""异常处理模块：定义统一的业务异常与响应格式。

路径解析与文件操作的失败按语义细分为几个子类，全局处理器统一转换为
``{"msg", "data", "code"}`` 结构。
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.core.security import consume_refreshed_token


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data

    @property
    def msg(self) -> str:
        return self.detail


class NotFoundError(AppException):
    """映射不存在或物理目标不存在。"""

    def __init__(self, msg: str = "路径不存在", data=None) -> None:
        super().__init__(msg, status.HTTP_404_NOT_FOUND, data)


class ForbiddenError(AppException):
    """越权访问其他用户的命名空间或缺少操作权限。"""

    def __init__(self, msg: str = "无权访问该路径", data=None) -> None:
        super().__init__(msg, status.HTTP_403_FORBIDDEN, data)


class ConflictError(AppException):
    """目标位置已存在同名文件或文件夹。"""

    def __init__(self, msg: str = "同名文件或文件夹已存在", data=None) -> None:
        super().__init__(msg, status.HTTP_409_CONFLICT, data)


class UnauthorizedError(AppException):
    """凭证缺失、错误或已过期。"""

    def __init__(self, msg: str = "认证失败", data=None) -> None:
        super().__init__(msg, status.HTTP_401_UNAUTHORIZED, data)


class GoneError(AppException):
    """资源曾经存在但已失效，例如过期的分享链接。"""

    def __init__(self, msg: str = "资源已失效", data=None) -> None:
        super().__init__(msg, status.HTTP_410_GONE, data)


class StorageIOError(AppException):
    """文件系统操作失败（权限、设备错误等非"不存在"类问题）。"""

    def __init__(self, msg: str = "文件系统操作失败", data=None) -> None:
        super().__init__(msg, status.HTTP_500_INTERNAL_SERVER_ERROR, data)


def _with_meta(payload: dict) -> dict:
    token = consume_refreshed_token()
    if token:
        payload["meta"] = {"access_token": token}
    return payload


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = {"msg": exc.detail, "data": getattr(exc, "data", None), "code": exc.status_code}
    return JSONResponse(status_code=exc.status_code, content=_with_meta(payload), headers=exc.headers)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：将未捕获异常转换为标准的 500 响应结构。"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    payload = {
        "msg": "服务器内部错误",
        "data": None,
        "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_with_meta(payload))
