"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from namestats.presentation.api.v1.endpoints.health import router as health_router
from namestats.presentation.api.v1.endpoints.datasets import router as datasets_router
from namestats.presentation.api.v1.endpoints.jobs import router as jobs_router
from namestats.presentation.api.v1.endpoints.parsers import router as parsers_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(datasets_router)
router.include_router(jobs_router)
router.include_router(parsers_router)
