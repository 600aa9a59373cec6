"""索引调度状态与手动重建路由（仅管理员）。"""

from fastapi import APIRouter, Depends

from app.packages.filebrowser.api.v1.schemas.stats import IndexRebuildResponse, IndexStatusResponse
from app.packages.filebrowser.core.constants import HTTP_STATUS_OK
from app.packages.filebrowser.core.dependencies import require_admin
from app.packages.filebrowser.core.responses import create_response
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.services.index_scheduler import index_scheduler

router = APIRouter(prefix="/index", tags=["index"])


@router.get("/status", response_model=IndexStatusResponse)
def index_status(_: User = Depends(require_admin)) -> IndexStatusResponse:
    return create_response("获取索引状态成功", index_scheduler.status(), HTTP_STATUS_OK)


@router.post("/rebuild", response_model=IndexRebuildResponse)
async def rebuild_index(_: User = Depends(require_admin)) -> IndexRebuildResponse:
    """立即执行一次全量索引；已有索引在运行时跳过。"""
    ran = await index_scheduler.tick()
    msg = "全量索引已完成" if ran else "已有索引任务在运行，本次跳过"
    return create_response(msg, {"ran": ran, **index_scheduler.status()}, HTTP_STATUS_OK)
