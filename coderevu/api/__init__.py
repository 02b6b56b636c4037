"""
HTTP API routers.
"""

from coderevu.api.user_routes import router as user_router
from coderevu.api.webhook_routes import router as webhook_router

__all__ = ["user_router", "webhook_router"]
