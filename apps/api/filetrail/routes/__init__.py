"""Route modules."""

from .admin import router as admin_router
from .auth import router as auth_router
from .files import router as files_router
from .pages import router as pages_router

__all__ = ["admin_router", "auth_router", "files_router", "pages_router"]
