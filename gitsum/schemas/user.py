"""Schemas for the signed-in user."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    image: Optional[str] = None
    provider: str
    created_at: datetime

    model_config = {"from_attributes": True}
