"""Health check endpoint — always available, reports worker pool state."""

from fastapi import APIRouter, Depends

from namestats.application.services import WorkerPool
from namestats.config import get_settings
from namestats.infrastructure.dependencies import get_worker_pool

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(pool: WorkerPool | None = Depends(get_worker_pool)) -> dict:
    """Returns the current application health status."""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "workers": pool.status() if pool is not None else {"state": "disabled"},
    }
