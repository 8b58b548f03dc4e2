"""API routes."""

from fastapi import APIRouter

from app.api.routes import notifications, sync, wholesale

api_router = APIRouter()

api_router.include_router(sync.router, prefix="/sync", tags=["supplier-sync"])
api_router.include_router(wholesale.router, prefix="/wholesale", tags=["wholesale"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
