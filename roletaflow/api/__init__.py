"""
API package for the RoletaFlow operator console.

This package aggregates all API routers to be included in the FastAPI
application. The API is versioned under ``/api/v1``.
"""

from fastapi import APIRouter
from .v1.operator import router as operator_router
from .v1.reports import router as reports_router
from .v1.health import router as health_router

api_router = APIRouter()
api_router.include_router(operator_router)
api_router.include_router(reports_router)
api_router.include_router(health_router)
