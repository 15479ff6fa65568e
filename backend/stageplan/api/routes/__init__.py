from fastapi import APIRouter

from stageplan.api.routes import exports, health, progress, projects, scurve, stages


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(projects.router)
api_router.include_router(stages.router)
api_router.include_router(progress.router)
api_router.include_router(scurve.router)
api_router.include_router(exports.router)
