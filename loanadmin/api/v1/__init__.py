from fastapi import APIRouter

from loanadmin.api.v1.routers import health, tenancy, verification

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(verification.router)
api_router.include_router(tenancy.router)

__all__ = ["api_router"]
