"""LCA Report Engine - API Routers"""
from .projects import router as projects_router
from .reports import router as reports_router
from .admin import router as admin_router

__all__ = [
    "projects_router",
    "reports_router",
    "admin_router",
]
