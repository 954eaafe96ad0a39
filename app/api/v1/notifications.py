from fastapi import APIRouter, Depends, HTTPException
from uuid import UUID

from app.api.deps import get_engine
from app.core.identity import Identity, current_identity
from app.schemas.response import SuccessResponse
from app.services.context import EngineContext

router = APIRouter()


@router.get("/", response_model=SuccessResponse)
async def list_notifications(unread_only: bool = False, identity: Identity = Depends(current_identity),
                             engine: EngineContext = Depends(get_engine)):
    """The caller's alerts, newest first."""
    items = engine.notifications.for_user(identity.id, unread_only=unread_only)
    return SuccessResponse(data=[n.model_dump(mode="json") for n in items])


@router.post("/{notification_id}/read", response_model=SuccessResponse)
async def mark_read(notification_id: UUID, identity: Identity = Depends(current_identity),
                    engine: EngineContext = Depends(get_engine)):
    if not engine.notifications.mark_read(notification_id, user_id=identity.id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return SuccessResponse(data={"id": str(notification_id), "read": True})
