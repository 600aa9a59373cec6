"""统计与索引状态的响应模型。"""

from typing import Any, Optional

from pydantic import BaseModel

from app.packages.filebrowser.api.v1.schemas.common import ResponseEnvelope


class UserStorageItem(BaseModel):
    id: int
    username: str
    totalSize: int
    formattedSize: str


class DiskUsageData(BaseModel):
    total: int
    free: int
    used: int
    formattedTotal: str
    formattedFree: str
    formattedUsed: str


class IndexStatusData(BaseModel):
    running: bool
    busy: bool
    intervalSeconds: float
    runs: int
    skipped: int
    lastStartedAt: Optional[str] = None
    lastFinishedAt: Optional[str] = None
    lastError: Optional[str] = None


UserStorageResponse = ResponseEnvelope[list[UserStorageItem]]
DiskUsageResponse = ResponseEnvelope[DiskUsageData]
IndexStatusResponse = ResponseEnvelope[IndexStatusData]
IndexRebuildResponse = ResponseEnvelope[Any]
