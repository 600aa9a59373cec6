"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from app.packages.filebrowser.api.v1.endpoints import auth, files, index, share, stats, users

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(files.router)
api_router.include_router(index.router)
api_router.include_router(share.router)
api_router.include_router(stats.router)
