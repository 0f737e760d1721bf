from fastapi import APIRouter
from flightdeck.api.v1.endpoints import health, projects, tasks, spreadsheet

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])

# Resource endpoints
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(tasks.router, prefix="/projects", tags=["tasks"])
api_router.include_router(spreadsheet.router, prefix="/projects", tags=["spreadsheet"])
