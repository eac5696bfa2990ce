from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ApiKeyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    last_used: Optional[datetime] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool


class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=365)


class ApiKeyCreated(BaseModel):
    id: UUID
    name: str
    key: str
    expires_at: Optional[datetime] = None
    message: str
