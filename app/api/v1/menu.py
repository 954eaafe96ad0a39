import logging
from fastapi import APIRouter, Depends, status
from uuid import UUID

from app.core.identity import Identity, current_identity
from app.schemas.admin import MenuItemRequest
from app.schemas.response import SuccessResponse
from app.services import menu_service

router = APIRouter()
log = logging.getLogger("uvicorn")


def _menu_item_data(item) -> dict:
    return {
        "id": str(item.id),
        "restaurant_id": str(item.restaurant_id),
        "name": item.name,
        "description": item.description,
        "price": str(item.price),
        "category": item.category,
        "photo_url": item.photo_url,
    }


@router.get("/{restaurant_id}", response_model=SuccessResponse)
async def get_menu(restaurant_id: UUID):
    items = await menu_service.get_menu(restaurant_id)
    return SuccessResponse(data=[_menu_item_data(i) for i in items])


@router.post("/{restaurant_id}/items", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_menu_item(restaurant_id: UUID, item_data: MenuItemRequest, identity: Identity = Depends(current_identity)):
    """Adds a menu item; orders already placed keep the prices they were placed with."""
    item = await menu_service.add_menu_item(
        restaurant_id,
        identity,
        name=item_data.name,
        price=item_data.price,
        description=item_data.description,
        category=item_data.category,
        photo_url=item_data.photo_url,
    )
    return SuccessResponse(data=_menu_item_data(item))


@router.delete("/items/{item_id}", response_model=SuccessResponse)
async def delete_menu_item(item_id: UUID, identity: Identity = Depends(current_identity)):
    await menu_service.delete_menu_item(item_id, identity)
    return SuccessResponse(data={"deleted": str(item_id)})
