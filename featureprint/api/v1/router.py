"""
Aggregate all v1 endpoint routers under the /v1 prefix.
"""

from fastapi import APIRouter

from featureprint.api.v1.endpoints.compare import router as compare_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(compare_router)
