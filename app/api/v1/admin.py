import logging
from fastapi import APIRouter, Depends
from typing import Optional
from uuid import UUID

from app.core.errors import PermissionDeniedError
from app.core.identity import Identity, current_identity
from app.schemas.admin import RestaurantFlagUpdate, RestaurantResponse, StatsResponse, ModeToggle
from app.schemas.response import SuccessResponse
from app.services import admin_service

router = APIRouter()
log = logging.getLogger("uvicorn")


async def require_admin(identity: Identity = Depends(current_identity)) -> Identity:
    if not identity.is_admin:
        raise PermissionDeniedError("Administrator access required.")
    return identity


@router.get("/test-mode", response_model=SuccessResponse)
async def get_test_mode(admin: Identity = Depends(require_admin)):
    return SuccessResponse(data={"enabled": await admin_service.is_test_mode()})


@router.put("/test-mode", response_model=SuccessResponse)
async def set_test_mode(payload: ModeToggle, admin: Identity = Depends(require_admin)):
    """New orders go to the test table (auto-paid, excluded from stats) while enabled."""
    enabled = await admin_service.set_test_mode(payload.enabled)
    log.info(f"Admin {admin.id} set test mode to {enabled}.")
    return SuccessResponse(data={"enabled": enabled})


@router.get("/restaurants", response_model=SuccessResponse)
async def list_restaurants(admin: Identity = Depends(require_admin)):
    restaurants = await admin_service.list_restaurants()
    return SuccessResponse(data=[RestaurantResponse.from_restaurant(r).model_dump(mode="json") for r in restaurants])


@router.post("/restaurants/{restaurant_id}/verify", response_model=SuccessResponse)
async def verify_restaurant(restaurant_id: UUID, payload: Optional[RestaurantFlagUpdate] = None,
                            admin: Identity = Depends(require_admin)):
    restaurant = await admin_service.set_restaurant_verified(restaurant_id, payload.value if payload else True)
    return SuccessResponse(data=RestaurantResponse.from_restaurant(restaurant).model_dump(mode="json"))


@router.post("/restaurants/{restaurant_id}/ban", response_model=SuccessResponse)
async def ban_restaurant(restaurant_id: UUID, payload: Optional[RestaurantFlagUpdate] = None,
                         admin: Identity = Depends(require_admin)):
    restaurant = await admin_service.set_restaurant_banned(restaurant_id, payload.value if payload else True)
    return SuccessResponse(data=RestaurantResponse.from_restaurant(restaurant).model_dump(mode="json"))


@router.get("/stats", response_model=SuccessResponse)
async def stats(admin: Identity = Depends(require_admin)):
    """Order count and revenue over production orders only."""
    data = StatsResponse(**await admin_service.get_stats())
    return SuccessResponse(data=data.model_dump(mode="json"))
