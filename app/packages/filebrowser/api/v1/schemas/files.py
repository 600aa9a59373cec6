"""文件浏览与文件操作的请求/响应模型。"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from app.packages.filebrowser.api.v1.schemas.common import ResponseEnvelope


class FileItem(BaseModel):
    name: str
    type: str
    extension: Optional[str] = None
    size: int
    modified: Optional[str] = None
    path: str
    lastIndexed: Optional[str] = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class FilesListData(BaseModel):
    path: str
    files: list[FileItem]
    pagination: Pagination


class CreateEntryBody(BaseModel):
    path: str = "/"
    name: str = Field(..., min_length=1, max_length=255)


class RenameBody(BaseModel):
    filePath: str = Field(..., min_length=1)
    newName: str = Field(..., min_length=1, max_length=255)


class MoveBody(BaseModel):
    filePaths: list[str] = Field(..., min_length=1)
    destinationPath: str = Field(..., min_length=1)


class DeleteBody(BaseModel):
    filePaths: list[str] = Field(..., min_length=1)


class DownloadBody(BaseModel):
    paths: list[str] = Field(..., min_length=1)


FilesListResponse = ResponseEnvelope[FilesListData]
FilesMutationResponse = ResponseEnvelope[Any]
