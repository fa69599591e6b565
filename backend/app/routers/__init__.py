"""CiviLens Accountability Engine - API Routers"""
from .complaints import router as complaints_router
from .gamification import router as gamification_router
from .dashboard import router as dashboard_router
from .scheduler import router as scheduler_router
from .classify import router as classify_router

__all__ = [
    "complaints_router",
    "gamification_router",
    "dashboard_router",
    "scheduler_router",
    "classify_router",
]
