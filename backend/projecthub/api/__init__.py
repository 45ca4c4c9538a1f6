"""API router package."""

from fastapi import APIRouter

from projecthub.api.v1 import (
    custom_properties,
    health,
    projects,
    taxonomy,
    tasks,
    users,
    websocket,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(
    custom_properties.router, prefix="/custom-properties", tags=["Custom Properties"]
)
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(taxonomy.router, prefix="/taxonomy", tags=["Taxonomy"])
router.include_router(websocket.router, tags=["WebSocket"])
