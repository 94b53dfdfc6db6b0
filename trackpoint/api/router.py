"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from trackpoint.api.tracking import router as tracking_router
from trackpoint.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(tracking_router)
api_router.include_router(health_router)
