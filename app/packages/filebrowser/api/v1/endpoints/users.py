"""用户管理路由：账号增删改与用户目录映射。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.filebrowser.api.v1.schemas.users import (
    PasswordChangeRequest,
    UserCreateRequest,
    UserHomePathsResponse,
    UserListResponse,
    UserMutationResponse,
    UserPathRequest,
    UserResponse,
    UserUpdateRequest,
)
from app.packages.filebrowser.core.dependencies import get_current_active_user, get_db, require_admin
from app.packages.filebrowser.models.user import User
from app.packages.filebrowser.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserListResponse)
def list_users(db: Session = Depends(get_db), _: User = Depends(require_admin)) -> UserListResponse:
    return user_service.list_users(db)


@router.post("", response_model=UserResponse)
def create_user(
    payload: UserCreateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> UserResponse:
    """创建用户并登记其主目录映射，映射失败时撤销用户创建。"""
    return user_service.create_user(
        db,
        username=payload.username,
        password=payload.password,
        custom_path=payload.customPath,
        role=payload.role,
        permissions=payload.permissions,
        can_rename=payload.canRename,
        can_delete=payload.canDelete,
        can_move=payload.canMove,
    )


@router.get("/paths", response_model=UserHomePathsResponse)
def list_home_paths(db: Session = Depends(get_db), _: User = Depends(require_admin)) -> UserHomePathsResponse:
    return user_service.list_home_paths(db)


@router.post("/{username}/path", response_model=UserMutationResponse)
def set_user_path(
    username: str,
    payload: UserPathRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> UserMutationResponse:
    return user_service.set_user_path(db, username=username, custom_path=payload.customPath)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> UserResponse:
    return user_service.update_user(
        db,
        user_id=user_id,
        role=payload.role,
        permissions=payload.permissions,
        password=payload.password,
        custom_path=payload.customPath,
        is_active=payload.isActive,
    )


@router.delete("/{user_id}", response_model=UserMutationResponse)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> UserMutationResponse:
    return user_service.delete_user(db, user_id=user_id, current_user=current_user)


@router.post("/{user_id}/password", response_model=UserMutationResponse)
def change_password(
    user_id: int,
    payload: PasswordChangeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> UserMutationResponse:
    return user_service.change_password(db, user_id=user_id, password=payload.password, current_user=current_user)
