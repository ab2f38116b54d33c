"""API v1 router."""
from fastapi import APIRouter

from app.api.v1 import admin, tests

api_router = APIRouter()

api_router.include_router(tests.router, prefix="/tests", tags=["Tests"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
