from fastapi import APIRouter
from pdfsplitter.api.v1.endpoints import health, split, jobs

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(split.router)
api_router.include_router(jobs.router)
