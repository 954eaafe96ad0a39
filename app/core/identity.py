from enum import Enum
from typing import Optional

from fastapi import Header, HTTPException, status
from pydantic import BaseModel


class Role(str, Enum):
    CUSTOMER = "customer"
    RESTAURANT_OWNER = "restaurant_owner"
    ADMIN = "admin"


class Identity(BaseModel):
    """The acting user, as issued by the external auth provider."""
    id: str
    role: Role
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


async def current_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
) -> Identity:
    """FastAPI dependency: resolves the session identity forwarded by the auth gateway."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        role = Role(x_user_role)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Unknown role '{x_user_role}'")
    return Identity(id=x_user_id, role=role, name=x_user_name)
