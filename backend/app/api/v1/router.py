"""API v1 router aggregator.

All v1 endpoint routers are included here.
"""

from fastapi import APIRouter

from app.api.v1 import admin, verification

router = APIRouter()

# =============================================================================
# Public onboarding
# =============================================================================

router.include_router(verification.router, prefix="/auth", tags=["auth"])

# =============================================================================
# Admin
# =============================================================================

router.include_router(admin.router, prefix="/admin", tags=["admin"])
