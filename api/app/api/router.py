from fastapi import APIRouter

from app.api.routes import admin, channels, health

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(channels.router, prefix="/channels", tags=["catalog"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
