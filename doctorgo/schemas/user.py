from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from ..core.security import UserRole

class UserResponse(BaseModel):
    id: int
    external_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
