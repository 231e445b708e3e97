from fastapi import APIRouter

from .auth_routes import router as auth_router
from .mapping_routes import router as mapping_router

router = APIRouter()
router.include_router(auth_router, tags=["auth"])
router.include_router(mapping_router, tags=["mappings"])

__all__ = ["router"]
