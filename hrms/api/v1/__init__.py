from fastapi import APIRouter

from hrms.api.v1.routers import departments, health

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(departments.router)

__all__ = ["api_router"]
