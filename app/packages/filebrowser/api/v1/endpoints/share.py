"""分享链接路由。

管理接口需要登录；``verify``、``access``、``download`` 面向匿名访问者，
凭链接密码换取的短期访问令牌工作。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.packages.filebrowser.api.v1.schemas.share import (
    ShareCreateBody,
    SharedLinkListResponse,
    SharedLinkResponse,
    ShareMultiCreateBody,
    ShareMutationResponse,
    ShareUpdateBody,
    ShareVerifyBody,
)
from app.packages.filebrowser.core.constants import HTTP_STATUS_OK
from app.packages.filebrowser.core.dependencies import get_current_active_user, get_db
from app.packages.filebrowser.core.responses import create_response
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.services.share_service import share_service

router = APIRouter(prefix="/share", tags=["share"])


@router.post("/create", response_model=ShareMutationResponse)
def create_share(
    payload: ShareCreateBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    data = share_service.create_link(
        db,
        current_user,
        file_path=payload.filePath,
        password=payload.password,
        expiry_days=payload.expiryDays,
    )
    return create_response("分享链接创建成功", data, HTTP_STATUS_OK)


@router.post("/create-multi", response_model=ShareMutationResponse)
def create_multi_share(
    payload: ShareMultiCreateBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    data = share_service.create_multi_link(
        db,
        current_user,
        file_paths=payload.filePaths,
        password=payload.password,
        expiry_days=payload.expiryDays,
    )
    return create_response("分享链接创建成功", data, HTTP_STATUS_OK)


@router.get("/list", response_model=SharedLinkListResponse)
def list_shares(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return create_response("获取分享链接成功", share_service.list_links(db, current_user), HTTP_STATUS_OK)


@router.put("/update/{link_id}", response_model=SharedLinkResponse)
def update_share(
    link_id: str,
    payload: ShareUpdateBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    data = share_service.update_link(
        db,
        current_user,
        link_id,
        change_expiry="expiryDays" in payload.model_fields_set,
        expiry_days=payload.expiryDays,
        new_password=payload.newPassword,
    )
    return create_response("分享链接更新成功", data, HTTP_STATUS_OK)


@router.delete("/delete/{link_id}", response_model=ShareMutationResponse)
@router.delete("/{link_id}", response_model=ShareMutationResponse)
def delete_share(
    link_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    data = share_service.delete_link(db, current_user, link_id)
    return create_response("分享链接删除成功", data, HTTP_STATUS_OK)


@router.post("/verify/{link_id}", response_model=ShareMutationResponse)
def verify_share_password(link_id: str, payload: ShareVerifyBody, db: Session = Depends(get_db)):
    data = share_service.verify_password(db, link_id, payload.password)
    return create_response("验证成功", data, HTTP_STATUS_OK)


@router.get("/access/{access_token}", response_model=ShareMutationResponse)
def access_share(access_token: str, db: Session = Depends(get_db)):
    return create_response("获取分享内容成功", share_service.access(db, access_token), HTTP_STATUS_OK)


@router.get("/download/{access_token}")
def download_shared_file(
    access_token: str,
    path: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return share_service.download(db, access_token, path=path)
