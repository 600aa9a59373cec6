"""存储统计路由（仅管理员）。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.filebrowser.api.v1.schemas.stats import DiskUsageResponse, UserStorageResponse
from app.packages.filebrowser.core.dependencies import get_db, require_admin
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.services.stats_service import stats_service

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/user-storage", response_model=UserStorageResponse)
def user_storage(db: Session = Depends(get_db), _: User = Depends(require_admin)) -> UserStorageResponse:
    return stats_service.user_storage(db)


@router.get("/disk-usage", response_model=DiskUsageResponse)
def disk_usage(_: User = Depends(require_admin)) -> DiskUsageResponse:
    return stats_service.disk_usage()
