from fastapi import APIRouter

from app.api.v1.routers import auth, folders, health

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(folders.router)

__all__ = ["api_router"]
