from fastapi import APIRouter

# Aggregate all v1 routers here
from .routers import files, principals, system, uploads

api_router = APIRouter()
api_router.include_router(uploads.router)
api_router.include_router(files.router)
api_router.include_router(principals.router)
api_router.include_router(system.router)

__all__ = ["api_router"]
