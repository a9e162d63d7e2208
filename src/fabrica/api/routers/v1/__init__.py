"""API v1 routers."""

from fastapi import APIRouter

from .auth import router as auth_router
from .invitations import router as invitations_router
from .onboarding import router as onboarding_router
from .tenants import router as tenants_router
from .users import router as users_router

router = APIRouter(prefix="/v1")

router.include_router(auth_router)
router.include_router(onboarding_router)
router.include_router(invitations_router)
router.include_router(tenants_router)
router.include_router(users_router)

__all__ = [
    "router",
    "auth_router",
    "invitations_router",
    "onboarding_router",
    "tenants_router",
    "users_router",
]
