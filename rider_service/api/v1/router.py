from fastapi import APIRouter

from rider_service.api.v1.health import router as health_router
from rider_service.api.v1.riders import router as riders_router
from rider_service.api.v1.acknowledgments import router as acknowledgments_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# RIDERS / NEGOTIATION
# ------------------------------------------------------------------
v1_router.include_router(riders_router, tags=["riders"])
v1_router.include_router(acknowledgments_router, tags=["acknowledgments"])
