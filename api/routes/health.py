"""Health check routes."""

from fastapi import APIRouter

from core.geometry import BooleanServiceConfig, TrimeshKernel

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@router.get("/health/csg")
async def csg_status():
    """Check boolean kernel availability."""
    engine = BooleanServiceConfig.from_env().engine
    return {
        "engine": engine,
        "csg_available": TrimeshKernel(engine=engine).is_supported(),
    }
