"""API v1 router combining all endpoints"""
from fastapi import APIRouter, Depends

from app.api.v1.endpoints import auth, projects, sbom, tokens
from app.dependencies.rate_limit import enforce_ip_rate_limit

# The IP layer runs before any endpoint-level dependency, authentication included.
router = APIRouter(prefix="/api/v1", dependencies=[Depends(enforce_ip_rate_limit)])

# Include all endpoint routers
router.include_router(auth.router)
router.include_router(tokens.router)
router.include_router(sbom.router)
router.include_router(projects.router)

__all__ = ["router"]
