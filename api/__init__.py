"""
API Module
FastAPI routers for the MedTrack application
"""

from api.trackers import router as trackers_router
from api.medicines import router as medicines_router
from api.doses import router as doses_router
from api.adherence import router as adherence_router

from api.deps import (
    get_db,
    get_repository,
    services,
)


__all__ = [
    # Routers
    "trackers_router",
    "medicines_router",
    "doses_router",
    "adherence_router",
    # Dependencies
    "get_db",
    "get_repository",
    "services",
]


def include_routers(app, prefix: str = "/api/v1"):
    """
    Include all API routers in the FastAPI app

    Usage:
        from api import include_routers
        include_routers(app)
    """
    app.include_router(trackers_router, prefix=prefix)
    app.include_router(medicines_router, prefix=prefix)
    app.include_router(doses_router, prefix=prefix)
    app.include_router(adherence_router, prefix=prefix)
