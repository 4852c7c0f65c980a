"""API routers."""

from portal.routers.admin import router as admin_router
from portal.routers.auth import router as auth_router
from portal.routers.files import router as files_router

__all__ = ["auth_router", "admin_router", "files_router"]
