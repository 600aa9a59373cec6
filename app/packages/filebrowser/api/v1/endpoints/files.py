"""文件浏览与文件/文件夹操作路由。

列表接口对缓存缺失或过期的条目只登记后台刷新任务，响应返回后才执行索引。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from app.packages.filebrowser.api.v1.schemas.files import (
    CreateEntryBody,
    DeleteBody,
    DownloadBody,
    FilesListResponse,
    FilesMutationResponse,
    MoveBody,
    RenameBody,
)
from app.packages.filebrowser.core.constants import HTTP_STATUS_OK
from app.packages.filebrowser.core.dependencies import get_current_active_user, get_db
from app.packages.filebrowser.core.enums import (
    DateRangeEnum,
    FileTypeFilterEnum,
    SizeRangeEnum,
    SortFieldEnum,
    SortOrderEnum,
)
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.core.responses import create_response
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.services.file_service import file_service
from app.packages.filebrowser.services.indexer import file_indexer

router = APIRouter(prefix="/files", tags=["files"])


@router.get("", response_model=FilesListResponse)
def list_files(
    background_tasks: BackgroundTasks,
    path: str = Query("/"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    sort_by: SortFieldEnum = Query(SortFieldEnum.NAME, alias="sortBy"),
    sort_order: SortOrderEnum = Query(SortOrderEnum.ASC, alias="sortOrder"),
    search: Optional[str] = Query(None),
    file_type: FileTypeFilterEnum = Query(FileTypeFilterEnum.ALL, alias="type"),
    extension: Optional[str] = Query(None),
    date_range: DateRangeEnum = Query(DateRangeEnum.ALL, alias="dateRange"),
    size_range: SizeRangeEnum = Query(SizeRangeEnum.ALL, alias="sizeRange"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    def _queue_refresh(physical_path: str, virtual_path: str) -> None:
        background_tasks.add_task(file_indexer.refresh_in_background, physical_path, virtual_path)

    data = file_service.list_directory(
        db,
        current_user,
        path=path,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        file_type=file_type,
        extension=extension,
        date_range=date_range,
        size_range=size_range,
        on_stale=_queue_refresh,
    )
    logger.debug(
        "files.list user=%s path=%s total=%s queued=%s",
        current_user.username,
        data["path"],
        data["pagination"]["total"],
        len(background_tasks.tasks),
    )
    return create_response("获取文件列表成功", data, HTTP_STATUS_OK)


@router.post("/mkdir", response_model=FilesMutationResponse)
def create_folder(
    payload: CreateEntryBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    data = file_service.mkdir(db, current_user, path=payload.path, name=payload.name)
    return create_response("文件夹创建成功", data, HTTP_STATUS_OK)


@router.post("/touch", response_model=FilesMutationResponse)
def create_file(
    payload: CreateEntryBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    data = file_service.touch(db, current_user, path=payload.path, name=payload.name)
    return create_response("文件创建成功", data, HTTP_STATUS_OK)


@router.post("/rename", response_model=FilesMutationResponse)
def rename_entry(
    payload: RenameBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    data = file_service.rename(db, current_user, file_path=payload.filePath, new_name=payload.newName)
    return create_response("重命名成功", data, HTTP_STATUS_OK)


@router.post("/move", response_model=FilesMutationResponse)
def move_entries(
    payload: MoveBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    data = file_service.move(
        db,
        current_user,
        file_paths=payload.filePaths,
        destination_path=payload.destinationPath,
    )
    return create_response("文件/文件夹移动成功", data, HTTP_STATUS_OK)


@router.post("/delete", response_model=FilesMutationResponse)
def delete_entries(
    payload: DeleteBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    data = file_service.delete(db, current_user, file_paths=payload.filePaths)
    return create_response("文件/文件夹删除成功", data, HTTP_STATUS_OK)


@router.post("/upload", response_model=FilesMutationResponse)
async def upload_files(
    path: str = Query("/"),
    files: list[UploadFile] = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    results = await file_service.upload(db, current_user, path=path, files=files)
    return create_response("文件上传完成", results, HTTP_STATUS_OK)


@router.post("/download")
def download_file(
    payload: DownloadBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return file_service.download(db, current_user, paths=payload.paths)
