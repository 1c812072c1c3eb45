from fastapi import APIRouter

from supermart.app.api.v1.endpoints import (
    auth,
    bills,
    discounts,
    inventory,
    shifts,
    users,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(discounts.router, prefix="/discounts", tags=["discounts"])
api_router.include_router(bills.router, prefix="/bills", tags=["bills"])
api_router.include_router(shifts.router, prefix="/shifts", tags=["shifts"])
