"""HTTP API routers."""

from folioforge.api.auth_routes import router as auth_router
from folioforge.api.upload_routes import router as upload_router

__all__ = [
    "auth_router",
    "upload_router",
]
